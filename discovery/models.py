"""
Data model for a single discovery run.

Nothing here outlives one pipeline invocation: a Submission belongs to one
solve call, and the calibration, comparison and report are produced once
per run and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SolverState(Enum):
    """Plate-solving protocol states."""
    LOGGED_OUT = "logged_out"
    SESSION_ESTABLISHED = "session_established"
    SUBMITTED = "submitted"
    POLLING = "polling"
    CALIBRATED = "calibrated"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class DiscoveryType(str, Enum):
    """Classification labels: anomalous vs. stable."""
    SUPERNOVA = "SUPERNOVA"
    GALAXY = "GALAXY"


@dataclass
class Submission:
    """An image in flight at the plate-solving service."""
    image_bytes: bytes
    session: Optional[str] = None
    submission_id: Optional[int] = None
    state: SolverState = SolverState.LOGGED_OUT
    attempts: int = 0


@dataclass(frozen=True)
class CalibrationResult:
    """Solved sky position of a submission."""
    ra: float   # degrees
    dec: float  # degrees
    job_id: int


@dataclass(frozen=True)
class ComparisonOutcome:
    """Pixel difference between the user image and the reference."""
    diff_count: int
    degraded: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryReport:
    """Terminal artifact of a successful run."""
    ra: str
    dec: str
    historical_image: str
    discovery: str
    type: DiscoveryType
    diff_count: int = 0
    job_id: Optional[int] = None
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "coords": {"ra": self.ra, "dec": self.dec},
            "historicalImage": self.historical_image,
            "discovery": self.discovery,
            "type": self.type.value,
        }
