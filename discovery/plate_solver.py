"""
Plate Solving via the astrometry.net API

Recovers the sky position of a photograph:

    LOGGED_OUT -> SESSION_ESTABLISHED -> SUBMITTED -> POLLING
               -> CALIBRATED | TIMED_OUT | FAILED

Each solve() call owns its own Submission and HTTP client, so concurrent
runs never share a session. Polling is driven by an injected RetryPolicy,
which lets tests replace the sleep with a fake clock.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import httpx

from .deadline import Deadline
from .errors import (
    AuthenticationError,
    SolvingServiceError,
    SolvingTimeout,
    TransportError,
)
from .models import CalibrationResult, SolverState, Submission

logger = logging.getLogger(__name__)

ASTROMETRY_NET_URL = "http://nova.astrometry.net/api"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded polling schedule."""
    max_attempts: int = 20
    interval: float = 3.0       # seconds before the first poll
    backoff: float = 1.0        # multiplier per attempt; 1.0 = fixed spacing
    max_interval: Optional[float] = None
    sleep: Callable[[float], None] = time.sleep

    def delays(self) -> Iterator[float]:
        """One delay per attempt."""
        delay = self.interval
        for _ in range(self.max_attempts):
            if self.max_interval is not None:
                delay = min(delay, self.max_interval)
            yield delay
            delay *= self.backoff


class PlateSolvingClient:
    """
    Client for the astrometry.net web API.

    Usage:
        client = PlateSolvingClient(api_key="...")
        calibration = client.solve(image_bytes)
        print(calibration.ra, calibration.dec)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = ASTROMETRY_NET_URL,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    def _transition(self, submission: Submission, state: SolverState):
        logger.debug(f"Plate solver: {submission.state.value} -> {state.value}")
        submission.state = state

    def _request_json(self, client: httpx.Client, submission: Submission, method: str, url: str, **kwargs) -> dict:
        """Send a request; transport failures move the submission to FAILED."""
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._transition(submission, SolverState.FAILED)
            raise TransportError(f"Plate solver request to {url} failed: {e}", stage="plate_solving") from e

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            self._transition(submission, SolverState.FAILED)
            raise SolvingServiceError(f"Plate solver returned invalid JSON from {url}") from e

        if not isinstance(payload, dict):
            self._transition(submission, SolverState.FAILED)
            raise SolvingServiceError(f"Unexpected plate solver response from {url}: {payload!r}")
        return payload

    # ─────────────────────────────────────────────────────────────────────
    # Protocol steps
    # ─────────────────────────────────────────────────────────────────────

    def login(self, client: httpx.Client, submission: Submission, api_key: Optional[str]):
        if not api_key:
            self._transition(submission, SolverState.FAILED)
            raise AuthenticationError("No astrometry.net API key configured")

        result = self._request_json(
            client, submission, "POST", "/login",
            data={"request-json": json.dumps({"apikey": api_key})},
        )
        if result.get("status") != "success" or not result.get("session"):
            self._transition(submission, SolverState.FAILED)
            raise AuthenticationError(
                f"Plate solver login failed: {result.get('errormessage', result.get('status'))}"
            )

        submission.session = result["session"]
        self._transition(submission, SolverState.SESSION_ESTABLISHED)

    def upload(self, client: httpx.Client, submission: Submission) -> int:
        result = self._request_json(
            client, submission, "POST", "/upload",
            files={"file": ("observation.jpg", submission.image_bytes, "application/octet-stream")},
            data={"request-json": json.dumps({
                "session": submission.session,
                "allow_commercial_use": "n",
                "allow_modifications": "n",
                "publicly_visible": "n",
            })},
        )
        if result.get("status") != "success" or "subid" not in result:
            self._transition(submission, SolverState.FAILED)
            raise SolvingServiceError(
                f"Plate solver upload failed: {result.get('errormessage', result.get('status'))}"
            )

        try:
            submission.submission_id = int(result["subid"])
        except (TypeError, ValueError) as e:
            self._transition(submission, SolverState.FAILED)
            raise SolvingServiceError(f"Plate solver returned an invalid submission id: {result['subid']!r}") from e
        self._transition(submission, SolverState.SUBMITTED)
        logger.info(f"Uploaded image to plate solver (submission {submission.submission_id})")
        return submission.submission_id

    def poll_once(self, client: httpx.Client, submission: Submission) -> Optional[CalibrationResult]:
        """One status check. Returns the calibration once a job has one."""
        status = self._request_json(client, submission, "GET", f"/submissions/{submission.submission_id}")

        calibrations = status.get("job_calibrations") or []
        jobs = status.get("jobs") or []
        if not isinstance(calibrations, list) or not isinstance(jobs, list):
            self._transition(submission, SolverState.FAILED)
            raise SolvingServiceError(f"Malformed status for submission {submission.submission_id}: {status!r}")

        if calibrations:
            try:
                job_id = int(calibrations[0][0])
            except (IndexError, KeyError, TypeError, ValueError) as e:
                self._transition(submission, SolverState.FAILED)
                raise SolvingServiceError(f"Malformed job calibration entry: {calibrations[0]!r}") from e
            calibration = self._request_json(client, submission, "GET", f"/jobs/{job_id}/calibration/")
            try:
                return CalibrationResult(
                    ra=float(calibration["ra"]),
                    dec=float(calibration["dec"]),
                    job_id=job_id,
                )
            except (KeyError, TypeError, ValueError) as e:
                self._transition(submission, SolverState.FAILED)
                raise SolvingServiceError(f"Calibration for job {job_id} is missing coordinates") from e

        for job_id in jobs:
            if job_id is None:
                continue
            job = self._request_json(client, submission, "GET", f"/jobs/{job_id}")
            if job.get("status") == "failure":
                self._transition(submission, SolverState.FAILED)
                raise SolvingServiceError(f"Plate solving failed for job {job_id}")

        return None

    def wait_for_calibration(
        self,
        client: httpx.Client,
        submission: Submission,
        deadline: Optional[Deadline] = None,
    ) -> CalibrationResult:
        deadline = deadline or Deadline.unbounded()
        self._transition(submission, SolverState.POLLING)

        for delay in self.retry_policy.delays():
            self.retry_policy.sleep(delay)
            deadline.check("plate_solving")

            submission.attempts += 1
            result = self.poll_once(client, submission)
            if result is not None:
                self._transition(submission, SolverState.CALIBRATED)
                logger.info(
                    f"Plate solved after {submission.attempts} polls: "
                    f"ra={result.ra:.4f} dec={result.dec:.4f} (job {result.job_id})"
                )
                return result
            logger.debug(f"No calibration yet (attempt {submission.attempts}/{self.retry_policy.max_attempts})")

        self._transition(submission, SolverState.TIMED_OUT)
        raise SolvingTimeout(
            f"Plate solving timed out after {submission.attempts} attempts"
        )

    def solve(
        self,
        image_bytes: bytes,
        api_key: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> CalibrationResult:
        """
        Run the full login/upload/poll protocol for one image.

        Args:
            image_bytes: Encoded image to solve
            api_key: Overrides the client's configured key
            deadline: Optional end-to-end budget checked between polls

        Raises:
            AuthenticationError, SolvingTimeout, SolvingServiceError,
            TransportError, DeadlineExceeded
        """
        submission = Submission(image_bytes=image_bytes)
        with self._client() as client:
            self.login(client, submission, api_key or self.api_key)
            self.upload(client, submission)
            return self.wait_for_calibration(client, submission, deadline)
