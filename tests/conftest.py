"""
Pytest configuration and fixtures for AstroVision tests.

External services are faked at the HTTP layer with httpx.MockTransport;
polling sleeps are recorded instead of waited.
"""

import io
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import numpy as np
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def make_image_bytes(
    size=(500, 500),
    mode: str = "L",
    fill=0,
    changed_pixels: int = 0,
    fmt: str = "PNG",
) -> bytes:
    """Encode a flat image whose first `changed_pixels` pixels are white."""
    img = Image.new(mode, size, fill)
    if changed_pixels:
        arr = np.array(img)
        flat = arr.reshape(-1, *arr.shape[2:])
        flat[:changed_pixels] = 255
        img = Image.fromarray(arr)
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


class RecordingSleep:
    """Stands in for time.sleep; remembers every requested delay."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float):
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakeAstrometry:
    """
    In-memory astrometry.net API.

    Args:
        solve_after: Number of status polls before a calibration appears
                     (None = never solves)
        ra, dec: Coordinates returned by the calibration endpoint
        login_ok: Whether /login succeeds
        job_fails: Whether the listed job reports failure
        fail_on: Path prefix that responds with HTTP 500
        subid: Submission id returned by /upload
        job_calibrations: Replaces the job_calibrations list of a solved status
    """

    def __init__(
        self,
        solve_after: Optional[int] = 1,
        ra: float = 150.0,
        dec: float = 2.0,
        login_ok: bool = True,
        job_fails: bool = False,
        fail_on: Optional[str] = None,
        subid=42,
        job_calibrations=None,
    ):
        self.solve_after = solve_after
        self.ra = ra
        self.dec = dec
        self.login_ok = login_ok
        self.job_fails = job_fails
        self.fail_on = fail_on
        self.subid = subid
        self.job_calibrations = [[7, 99]] if job_calibrations is None else job_calibrations
        self.status_polls = 0
        self.requests: List[httpx.Request] = []
        self.login_payloads: List[Dict] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/api", "", 1)

        if self.fail_on and path.startswith(self.fail_on):
            return httpx.Response(500, text="internal error")

        if path == "/login":
            form = parse_qs(request.content.decode())
            self.login_payloads.append(json.loads(form["request-json"][0]))
            if not self.login_ok:
                return httpx.Response(200, json={"status": "error", "errormessage": "bad apikey"})
            return httpx.Response(200, json={"status": "success", "session": "sess-123"})

        if path == "/upload":
            return httpx.Response(200, json={"status": "success", "subid": self.subid})

        if path == "/submissions/42":
            self.status_polls += 1
            solved = self.solve_after is not None and self.status_polls >= self.solve_after
            if solved and not self.job_fails:
                return httpx.Response(200, json={"jobs": [7], "job_calibrations": self.job_calibrations})
            if self.job_fails:
                return httpx.Response(200, json={"jobs": [7], "job_calibrations": []})
            return httpx.Response(200, json={"jobs": [], "job_calibrations": []})

        if path == "/jobs/7":
            return httpx.Response(200, json={"status": "failure" if self.job_fails else "solving"})

        if path == "/jobs/7/calibration/":
            return httpx.Response(200, json={
                "ra": self.ra,
                "dec": self.dec,
                "radius": 0.5,
                "pixscale": 3.6,
                "orientation": 12.3,
            })

        return httpx.Response(404, json={"status": "error"})


class FakeSkyView:
    """Serves one fixed reference image, or fails every request."""

    def __init__(self, image: Optional[bytes] = None, status: int = 200, raise_error: bool = False):
        self.image = image
        self.status = status
        self.raise_error = raise_error
        self.requests: List[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status, content=self.image or b"")


@pytest.fixture
def image_factory():
    """Build encoded test images."""
    return make_image_bytes


@pytest.fixture
def sleep():
    """Recording replacement for time.sleep."""
    return RecordingSleep()


@pytest.fixture
def astrometry():
    """Fake astrometry.net service that solves on the first poll."""
    return FakeAstrometry()


@pytest.fixture
def sample_coordinates():
    """Sample astronomical coordinates for testing."""
    return [
        {"ra": 150.0, "dec": 2.0, "name": "SDSS region"},
        {"ra": 10.1234, "dec": -5.6789, "name": "Southern field"},
        {"ra": 201.365, "dec": -43.019, "name": "Centaurus A"},
    ]
