"""
ytclipper Backend — Shared Response Schemas
=============================================

What:  Error envelope and health check response used across all routers.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "INVALID_CREDENTIALS",
            "message": "Invalid credentials",
            "details": null,
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Stable machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    Health check response.

    A backend that can't reach its database can't authenticate anyone, so the
    database check decides between healthy and unhealthy.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
