"""
Pydantic response schemas for the API.
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str = Field(..., description="Health status of the exporter.")
    version: str = Field(..., description="Current application version.")
