"""
Discovery Pipeline Module

Plate-solve a sky photograph, compare it with a historical survey image and
classify the region as stable or anomalous.
"""

from .classifier import ANOMALY_THRESHOLD, DiscoveryClassifier
from .comparator import ImageComparator
from .deadline import Deadline
from .errors import (
    AuthenticationError,
    ComparisonUnavailable,
    DeadlineExceeded,
    DiscoveryError,
    InvalidImageError,
    SolvingServiceError,
    SolvingTimeout,
    TransportError,
)
from .models import (
    CalibrationResult,
    ComparisonOutcome,
    DiscoveryReport,
    DiscoveryType,
    SolverState,
    Submission,
)
from .pipeline import DiscoveryPipeline, run_discovery
from .plate_solver import PlateSolvingClient, RetryPolicy
from .reference import ReferenceImageFetcher

__all__ = [
    "ANOMALY_THRESHOLD",
    "AuthenticationError",
    "CalibrationResult",
    "ComparisonOutcome",
    "ComparisonUnavailable",
    "Deadline",
    "DeadlineExceeded",
    "DiscoveryClassifier",
    "DiscoveryError",
    "DiscoveryPipeline",
    "DiscoveryReport",
    "DiscoveryType",
    "ImageComparator",
    "InvalidImageError",
    "PlateSolvingClient",
    "ReferenceImageFetcher",
    "RetryPolicy",
    "SolverState",
    "SolvingServiceError",
    "SolvingTimeout",
    "Submission",
    "TransportError",
    "run_discovery",
]
