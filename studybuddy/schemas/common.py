"""
Common schema types used across the API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Error body returned by the engine exception handlers."""

    # Quota refusals append the decision fields
    model_config = ConfigDict(extra="allow")

    error: str
    message: str
    field: Optional[str] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
