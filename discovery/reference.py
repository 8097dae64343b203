"""
Historical reference images from NASA SkyView.

The locator is built so that the survey returns an image at the same pixel
resolution the comparator works at.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

SKYVIEW_URL = "https://skyview.gsfc.nasa.gov/current/cgi/runquery.pl"
DEFAULT_SURVEY = "DSS2 Red"
FIELD_OF_VIEW_DEG = 0.5
OUTPUT_PIXELS = 500


class ReferenceImageFetcher:
    """Build and download survey cutouts centered on solved coordinates."""

    def __init__(
        self,
        base_url: str = SKYVIEW_URL,
        survey: str = DEFAULT_SURVEY,
        size_deg: float = FIELD_OF_VIEW_DEG,
        pixels: int = OUTPUT_PIXELS,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.survey = survey
        self.size_deg = size_deg
        self.pixels = pixels
        self.timeout = timeout_seconds
        self._transport = transport

    def build_reference_url(self, ra: float, dec: float) -> str:
        # Coordinates are passed through untouched; callers validate them.
        return (
            f"{self.base_url}"
            f"?Survey={quote(self.survey)}"
            f"&Position={ra},{dec}"
            f"&Size={self.size_deg}"
            f"&Pixels={self.pixels}"
            f"&Return=JPEG"
        )

    def fetch(self, url: str) -> bytes:
        """Download a reference image."""
        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Reference image fetch failed: {e}", stage="reference") from e

        logger.debug(f"Fetched reference image ({len(response.content) / 1024:.1f} KB)")
        return response.content
