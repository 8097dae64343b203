"""
Pydantic models for API request/response schemas.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────────────
# Discovery Models
# ─────────────────────────────────────────────────────────────────────────────

class DiscoveryRequest(BaseModel):
    """Photo submitted from the observation UI."""
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64", min_length=1)
    question: Optional[str] = None


class Coordinates(BaseModel):
    """Solved position, formatted to 4 decimals."""
    ra: str
    dec: str


class DiscoveryResponse(BaseModel):
    """Result of a discovery run."""
    model_config = ConfigDict(populate_by_name=True)

    coords: Coordinates
    historical_image: str = Field(..., alias="historicalImage")
    discovery: str
    type: Literal["SUPERNOVA", "GALAXY"]


class ErrorResponse(BaseModel):
    """Error body for any failed request."""
    error: str


# ─────────────────────────────────────────────────────────────────────────────
# Health Models
# ─────────────────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    plate_solver_configured: bool
    inference_configured: bool
