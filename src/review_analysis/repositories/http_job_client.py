"""HTTP client for the external review-analysis service.

Endpoints used:
    POST /analyze               start a job, returns ``{taskId, status, estimatedTime}``
    GET  /status/{productId}    poll a product's job state

Every call is bounded by a hard deadline enforced with ``asyncio.wait_for``
on top of the transport's own timeout, so a stalled connection always
surfaces as ``UpstreamTimeoutError``. Only connection failures and timeouts
are retried, with exponential backoff; every other failure is raised on the
first attempt.
"""

import asyncio
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from review_analysis.config import settings
from review_analysis.dto.upstream import JobStatusResponse, StartJobRequest, StartJobResponse, UpstreamModel
from review_analysis.entities import JobAccepted, JobStatus
from review_analysis.errors import (
    UnknownUpstreamError,
    UpstreamAuthError,
    UpstreamConnectionError,
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=UpstreamModel)

USER_AGENT = "review-analysis/0.1.0"


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human-readable reason from an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("message") or data.get("detail") or response.reason_phrase)
    return response.reason_phrase


def classify_response(response: httpx.Response) -> UpstreamError | None:
    """Map an HTTP error status onto the upstream error taxonomy.

    Returns:
        The error to raise, or None for a successful response
    """
    status_code = response.status_code
    if status_code < 400:
        return None
    if status_code in (401, 403):
        return UpstreamAuthError()
    if status_code == 404:
        return UpstreamNotFoundError()
    if status_code == 408:
        return UpstreamTimeoutError()
    if status_code < 500:
        return UpstreamValidationError(
            f"The analysis service rejected the request: {_error_detail(response)}"
        )
    return UnknownUpstreamError(f"The analysis service returned HTTP {status_code}")


class HttpJobClient:
    """Async HTTP implementation of the JobClient protocol.

    This class satisfies the JobClient protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        client = HttpJobClient.create()
        accepted = await client.start_job("p1", "https://shop/p1", None, callback_url)
        print(accepted.task_id)
        ```
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the job client.

        Args:
            base_url: Analysis service base URL. Defaults to settings.
            token: Bearer token for the service. Defaults to settings.
            timeout: Hard deadline per attempt in seconds. Defaults to settings.
            max_retries: Retries for connection failures and timeouts. Defaults to settings.
            retry_base_delay: First backoff delay in seconds. Defaults to settings.
            transport: Optional httpx transport (used by tests).
        """
        self._base_url = (base_url or settings.analysis_server_url).rstrip("/")
        self._token = token if token is not None else settings.analysis_server_token
        self._timeout = timeout or settings.http_timeout
        self._max_retries = settings.http_retry_count if max_retries is None else max_retries
        self._retry_base_delay = (
            settings.http_retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        logger.debug(
            "HttpJobClient initialized: base_url=%s, timeout=%.1fs, max_retries=%d",
            self._base_url,
            self._timeout,
            self._max_retries,
        )

    @classmethod
    def create(
        cls,
        base_url: str | None = None,
        token: str | None = None,
    ) -> "HttpJobClient":
        """Factory method to create HttpJobClient with defaults.

        Args:
            base_url: Service URL. If None, uses settings.
            token: Bearer token. If None, uses settings.

        Returns:
            Configured HttpJobClient
        """
        return cls(base_url=base_url, token=token)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {"User-Agent": USER_AGENT}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    async def start_job(
        self,
        product_id: str,
        url: str | None,
        keywords: list[str] | None,
        callback_url: str,
    ) -> JobAccepted:
        """Start an analysis job for a product.

        Raises:
            UpstreamError: Classified failure after any retries
        """
        body = StartJobRequest(
            product_id=product_id,
            url=url,
            keywords=keywords,
            callback_url=callback_url,
        ).model_dump(by_alias=True, exclude_none=True)

        data = await self._request("POST", "/analyze", json=body)
        accepted = self._parse(StartJobResponse, data).to_entity()
        logger.info("Analysis job started for product %s: task %s", product_id, accepted.task_id)
        return accepted

    async def poll_status(self, product_id: str) -> JobStatus:
        """Poll the current job state for a product.

        Raises:
            UpstreamNotFoundError: If the service has no record
            UpstreamError: Any other classified failure
        """
        data = await self._request("GET", f"/status/{quote(product_id, safe='')}")
        return self._parse(JobStatusResponse, data).to_entity()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request, retrying only transient failures."""
        for attempt in range(self._max_retries + 1):
            try:
                return await self._send_once(method, path, **kwargs)
            except UpstreamError as e:
                if not e.retryable or attempt >= self._max_retries:
                    raise
                delay = self._retry_base_delay * (2**attempt)
                logger.warning(
                    "%s on %s %s (attempt %d/%d), retrying in %.1fs",
                    type(e).__name__,
                    method,
                    path,
                    attempt + 1,
                    self._max_retries + 1,
                    delay,
                )
                await asyncio.sleep(delay)

        # unreachable: the last attempt either returns or raises
        raise UnknownUpstreamError()

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await asyncio.wait_for(
                self.client.request(method, path, **kwargs),
                timeout=self._timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise UpstreamTimeoutError(
                f"The analysis service did not respond within {self._timeout}s"
            ) from e
        except (httpx.NetworkError, OSError) as e:
            raise UpstreamConnectionError() from e
        except httpx.HTTPError as e:
            raise UnknownUpstreamError() from e

        error = classify_response(response)
        if error is not None:
            logger.warning("Analysis service %s %s -> HTTP %d", method, path, response.status_code)
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise UnknownUpstreamError("The analysis service returned a non-JSON response") from e

    @staticmethod
    def _parse(model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            logger.warning("Malformed analysis service response: %s", e)
            raise UnknownUpstreamError("The analysis service returned a malformed response") from e

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
