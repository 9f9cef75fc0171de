"""Analysis job client protocol.

Defines the interface to the external service that runs review analyses.
Implementations classify every failure into the ``review_analysis.errors``
upstream taxonomy so callers never see transport-specific exceptions.
"""

from typing import Protocol, runtime_checkable

from review_analysis.entities import JobAccepted, JobStatus


@runtime_checkable
class JobClient(Protocol):
    """Protocol for clients of the external analysis service."""

    async def start_job(
        self,
        product_id: str,
        url: str | None,
        keywords: list[str] | None,
        callback_url: str,
    ) -> JobAccepted:
        """Start an analysis job.

        Args:
            product_id: The product to analyse
            url: Optional product page URL
            keywords: Optional keywords to focus the analysis on
            callback_url: Where the service posts the final state

        Returns:
            The accepted job with its task id

        Raises:
            UpstreamError: One of its subclasses, already classified
        """
        ...

    async def poll_status(self, product_id: str) -> JobStatus:
        """Ask the service for the current state of a product's analysis.

        Raises:
            UpstreamNotFoundError: If the service has no record
            UpstreamError: Any other classified failure
        """
        ...
