"""
Error taxonomy for the discovery pipeline.

Every stage failure is a DiscoveryError carrying the stage that raised it,
so the API layer can turn any of them into a single error message.
"""

from __future__ import annotations

from typing import Optional


class DiscoveryError(Exception):
    """Base class for all pipeline failures."""

    stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class InvalidImageError(DiscoveryError):
    """Submitted bytes could not be decoded as an image."""

    stage = "decode"


class AuthenticationError(DiscoveryError):
    """Plate-solving login failed or no API key was configured."""

    stage = "plate_solving"


class SolvingTimeout(DiscoveryError):
    """No calibration was produced within the poll budget."""

    stage = "plate_solving"


class SolvingServiceError(DiscoveryError):
    """The plate-solving service reported a failure or sent malformed data."""

    stage = "plate_solving"


class TransportError(DiscoveryError):
    """Network failure while talking to an external service."""


class DeadlineExceeded(DiscoveryError):
    """The end-to-end deadline for a run ran out."""


class ComparisonUnavailable(DiscoveryError):
    """Comparison could not complete and the pipeline is set to fail on it."""

    stage = "comparison"
