"""
Common Schemas

Envelope schemas shared by the bridge endpoints and service probes.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for errors the rendering surface cannot recover from."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    category: Optional[str] = Field(None, description="FeedSync error category, when known")


class SuccessResponse(BaseModel):
    """Acknowledgement for commands that return no snapshot."""

    success: bool = Field(default=True, description="Operation success status")
    message: str = Field(..., description="Success message")
    user_id: Optional[str] = Field(None, description="User the command applied to")


class HealthCheckResponse(BaseModel):
    """Liveness probe payload."""

    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(..., description="Probe time (UTC)")
    store: str = Field(..., description="Remote post store implementation in use")
    open_sessions: int = Field(..., ge=0, description="Mounted feed sessions")
