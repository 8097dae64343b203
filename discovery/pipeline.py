"""
Discovery Pipeline

Sequences one discovery request:
1. Validate  - the submitted bytes must decode as an image
2. Solve     - plate-solve to (ra, dec)
3. Reference - build the survey locator for the solved position
4. Compare   - pixel difference against the reference image
5. Classify  - threshold the difference into SUPERNOVA / GALAXY

Stages run strictly in order; the first unrecovered error aborts the run.
Only the comparator recovers locally, and what a degraded comparison means
for the run is decided here.
"""

from __future__ import annotations

import io
import logging
import time
from typing import TYPE_CHECKING, Optional, Protocol, Union

from PIL import Image

from .classifier import DiscoveryClassifier
from .comparator import ImageComparator
from .deadline import Deadline
from .errors import ComparisonUnavailable, InvalidImageError
from .models import CalibrationResult, ComparisonOutcome, DiscoveryReport
from .plate_solver import PlateSolvingClient, RetryPolicy
from .reference import ReferenceImageFetcher

if TYPE_CHECKING:
    from settings import Settings

logger = logging.getLogger(__name__)


class PlateSolver(Protocol):
    def solve(
        self,
        image_bytes: bytes,
        api_key: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> CalibrationResult: ...


class ReferenceSource(Protocol):
    def build_reference_url(self, ra: float, dec: float) -> str: ...

    def fetch(self, url: str) -> bytes: ...


class Comparator(Protocol):
    def compare(self, image_a: bytes, image_b: Union[bytes, str]) -> ComparisonOutcome: ...


class DiscoveryPipeline:
    """
    Orchestrates plate solving, reference lookup, comparison and classification.

    Usage:
        pipeline = DiscoveryPipeline.from_settings(Settings.from_env())
        report = pipeline.run(image_bytes)
        print(report.to_dict())
    """

    def __init__(
        self,
        solver: PlateSolver,
        fetcher: ReferenceSource,
        comparator: Optional[Comparator] = None,
        classifier: Optional[DiscoveryClassifier] = None,
        on_degraded: str = "stable",  # "stable" or "fail"
        deadline_seconds: Optional[float] = None,
    ):
        if on_degraded not in ("stable", "fail"):
            raise ValueError(f"on_degraded must be 'stable' or 'fail', got {on_degraded!r}")
        self.solver = solver
        self.fetcher = fetcher
        self.comparator = comparator or ImageComparator(fetcher=fetcher)
        self.classifier = classifier or DiscoveryClassifier()
        self.on_degraded = on_degraded
        self.deadline_seconds = deadline_seconds

    @classmethod
    def from_settings(cls, settings: "Settings") -> "DiscoveryPipeline":
        solver = PlateSolvingClient(
            api_key=settings.astrometry_api_key,
            base_url=settings.astrometry_api_url,
            retry_policy=RetryPolicy(
                max_attempts=settings.poll_attempts,
                interval=settings.poll_interval,
            ),
            timeout_seconds=settings.http_timeout,
        )
        fetcher = ReferenceImageFetcher(
            base_url=settings.skyview_url,
            survey=settings.skyview_survey,
            timeout_seconds=settings.http_timeout,
        )
        return cls(
            solver=solver,
            fetcher=fetcher,
            on_degraded=settings.degraded_policy,
            deadline_seconds=settings.discovery_deadline,
        )

    def _validate_image(self, image_bytes: bytes):
        if not image_bytes:
            raise InvalidImageError("Empty image payload")
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.verify()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            raise InvalidImageError(f"Submitted data is not a readable image: {e}") from e

    def run(self, image_bytes: bytes, deadline: Optional[Deadline] = None) -> DiscoveryReport:
        """
        Run one discovery.

        Args:
            image_bytes: Encoded photograph of the sky
            deadline: Caller-supplied budget; defaults to the pipeline's own

        Returns:
            DiscoveryReport with all fields populated

        Raises:
            DiscoveryError subclasses from whichever stage failed
        """
        deadline = deadline or Deadline(self.deadline_seconds)
        start = time.time()

        self._validate_image(image_bytes)

        deadline.check("plate_solving")
        calibration = self.solver.solve(image_bytes, deadline=deadline)

        deadline.check("reference")
        reference_url = self.fetcher.build_reference_url(calibration.ra, calibration.dec)
        logger.info(f"Reference image: {reference_url}")

        deadline.check("comparison")
        outcome = self.comparator.compare(image_bytes, reference_url)
        if outcome.degraded and self.on_degraded == "fail":
            raise ComparisonUnavailable(
                f"Reference comparison unavailable: {outcome.reason}"
            )

        label = self.classifier.classify(outcome.diff_count)
        verdict = self.classifier.verdict(outcome.diff_count, label, degraded=outcome.degraded)

        report = DiscoveryReport(
            ra=f"{calibration.ra:.4f}",
            dec=f"{calibration.dec:.4f}",
            historical_image=reference_url,
            discovery=verdict,
            type=label,
            diff_count=outcome.diff_count,
            job_id=calibration.job_id,
            degraded=outcome.degraded,
        )
        logger.info(
            f"Discovery complete in {time.time() - start:.1f}s: {label.value} "
            f"(diff={outcome.diff_count}, ra={report.ra}, dec={report.dec})"
        )
        return report


def run_discovery(
    image_bytes: bytes,
    settings: Optional["Settings"] = None,
    deadline: Optional[Deadline] = None,
) -> DiscoveryReport:
    """Build a pipeline from settings (environment by default) and run it."""
    if settings is None:
        from settings import Settings
        settings = Settings.from_env()
    return DiscoveryPipeline.from_settings(settings).run(image_bytes, deadline=deadline)
