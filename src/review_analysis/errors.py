"""Error taxonomy for analysis orchestration.

Every error that can reach a caller carries a stable machine-readable
``code`` and the HTTP status it maps to. The outbound job client raises
the ``Upstream*`` classes; the service propagates them unchanged and the
handler layer renders ``code`` and the message, nothing else.

    AnalysisError
    ├── ValidationError            VALIDATION_ERROR            400
    ├── AnalysisNotFoundError      ANALYSIS_NOT_FOUND          404
    └── UpstreamError
        ├── UpstreamConnectionError  EXTERNAL_SERVICE_ERROR    502  (retried)
        ├── UpstreamTimeoutError     TIMEOUT_ERROR             408  (retried)
        ├── UpstreamAuthError        EXTERNAL_AUTH_ERROR       502
        ├── UpstreamNotFoundError    ANALYSIS_NOT_FOUND        404
        ├── UpstreamValidationError  ANALYSIS_REQUEST_REJECTED 400
        └── UnknownUpstreamError     EXTERNAL_SERVICE_ERROR    502
"""


class AnalysisError(Exception):
    """Base class for caller-facing analysis errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    default_message: str = "Analysis request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Render the error as the public ``{code, message}`` pair."""
        return {"code": self.code, "message": self.message}


class ValidationError(AnalysisError):
    """Caller input is malformed. Never retried."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class AnalysisNotFoundError(AnalysisError):
    """No analysis is known for the requested product."""

    code = "ANALYSIS_NOT_FOUND"
    status_code = 404
    default_message = "No analysis found for this product"


class UpstreamError(AnalysisError):
    """A failure talking to the external analysis service."""

    code = "EXTERNAL_SERVICE_ERROR"
    status_code = 502
    default_message = "Analysis service request failed"
    retryable: bool = False


class UpstreamConnectionError(UpstreamError):
    default_message = "Could not connect to the analysis service"
    retryable = True


class UpstreamTimeoutError(UpstreamError):
    code = "TIMEOUT_ERROR"
    status_code = 408
    default_message = "The analysis service did not respond in time"
    retryable = True


class UpstreamAuthError(UpstreamError):
    """The analysis service rejected our credentials."""

    code = "EXTERNAL_AUTH_ERROR"
    default_message = "Authentication with the analysis service failed"


class UpstreamNotFoundError(UpstreamError):
    code = "ANALYSIS_NOT_FOUND"
    status_code = 404
    default_message = "The analysis service has no record of this analysis"


class UpstreamValidationError(UpstreamError):
    code = "ANALYSIS_REQUEST_REJECTED"
    status_code = 400
    default_message = "The analysis service rejected the request"


class UnknownUpstreamError(UpstreamError):
    default_message = "Unexpected error from the analysis service"
