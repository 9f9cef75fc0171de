"""Request DTOs for API endpoints."""

from pydantic import Field

from .base import CamelModel


class AnalyzeRequest(CamelModel):
    """Request DTO for starting an analysis.

    The handler will convert this to internal calls to the service layer.
    """

    product_id: str = Field(..., description="The product to analyse")
    url: str | None = Field(None, description="Product page URL (http or https)")
    keywords: list[str] | None = Field(None, description="Keywords to focus the analysis on")
    user_id: str | None = Field(None, description="Requesting user, for attribution only")
    force: bool = Field(False, description="Drop cached state and start a fresh analysis")


class BatchInvalidateRequest(CamelModel):
    """Request DTO for invalidating several products at once."""

    product_ids: list[str] = Field(..., description="Products whose cache entries are dropped", min_length=1)
