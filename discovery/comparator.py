"""
Image Comparison against a Historical Reference

Both images are normalized to a common resolution and to greyscale before a
per-pixel perceptual difference is taken:

1. Decode (Pillow)
2. Rescale 16-bit, 32-bit integer and float frames into 0..255
3. Resize to 500x500
4. Convert to single-channel luminance
5. YIQ colour delta (as in pixelmatch) against a tolerance threshold
6. Count the pixels above tolerance

Inputs may differ in size, mode and bit depth; normalization makes the
pixel-indexed comparison well defined.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import TransportError
from .models import ComparisonOutcome
from .reference import ReferenceImageFetcher

logger = logging.getLogger(__name__)

WORKING_SIZE = (500, 500)
DIFF_THRESHOLD = 0.15

# Single-channel modes wider than 8 bits; convert("L") clips these.
HIGH_DEPTH_MODES = ("I", "F")

# Largest possible YIQ delta between two RGB pixels.
MAX_YIQ_DELTA = 35215.0
# Luminance weight of the YIQ delta; I and Q vanish for grey pixels.
Y_WEIGHT = 0.5053


class ImageComparator:
    """
    Count differing pixels between a user image and a reference image.

    Usage:
        comparator = ImageComparator(fetcher=ReferenceImageFetcher())
        outcome = comparator.compare(photo_bytes, reference_url)
        print(outcome.diff_count)
    """

    def __init__(
        self,
        fetcher: Optional[ReferenceImageFetcher] = None,
        size: Tuple[int, int] = WORKING_SIZE,
        threshold: float = DIFF_THRESHOLD,
    ):
        self.fetcher = fetcher or ReferenceImageFetcher()
        self.size = size
        self.threshold = threshold

    @staticmethod
    def to_8bit(img: Image.Image) -> Image.Image:
        """
        Bring a high-bit-depth single-channel frame into 8-bit range.

        I;16 frames are divided by 257 so 65535 maps to 255. I and F frames
        are scaled by the range their values occupy: [0, 1] floats, 8-bit,
        16-bit, and otherwise min-max.
        """
        arr = np.asarray(img, dtype=np.float64)
        if img.mode.startswith("I;16"):
            arr = arr / 257.0
        elif arr.size:
            low, peak = float(arr.min()), float(arr.max())
            if img.mode == "F" and low >= 0.0 and peak <= 1.0:
                arr = arr * 255.0
            elif low < 0.0 or peak > 65535.0:
                arr = (arr - low) * (255.0 / ((peak - low) or 1.0))
            elif peak > 255.0:
                arr = arr / 257.0
        return Image.fromarray(np.clip(np.round(arr), 0, 255).astype(np.uint8))

    def normalize(self, data: bytes) -> np.ndarray:
        """Decode, resize and greyscale an image into a float array."""
        with Image.open(io.BytesIO(data)) as img:
            if img.mode.startswith("I;16") or img.mode in HIGH_DEPTH_MODES:
                img = self.to_8bit(img)
            img = img.resize(self.size, Image.Resampling.BILINEAR)
            img = img.convert("L")
            return np.asarray(img, dtype=np.float64)

    def pixel_difference(self, a: np.ndarray, b: np.ndarray) -> int:
        """Number of pixels whose perceptual delta exceeds the tolerance."""
        if a.shape != b.shape:
            raise ValueError(f"Shape mismatch: {a.shape} vs {b.shape}")

        delta = Y_WEIGHT * (a - b) ** 2
        max_delta = MAX_YIQ_DELTA * self.threshold * self.threshold
        return int(np.count_nonzero(delta > max_delta))

    def compare(self, image_a: bytes, image_b: Union[bytes, str]) -> ComparisonOutcome:
        """
        Compare two images.

        Args:
            image_a: Encoded user image
            image_b: Encoded reference image, or a locator to download it from

        Returns:
            ComparisonOutcome. Decode and network failures do not raise:
            they yield diff_count=0 with degraded=True.
        """
        try:
            if isinstance(image_b, str):
                image_b = self.fetcher.fetch(image_b)

            a = self.normalize(image_a)
            b = self.normalize(image_b)
            diff = self.pixel_difference(a, b)
        except (TransportError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(f"Image comparison degraded to zero difference: {e}")
            return ComparisonOutcome(diff_count=0, degraded=True, reason=str(e))

        logger.info(f"Image comparison: {diff} pixels differ (threshold {self.threshold})")
        return ComparisonOutcome(diff_count=diff)
