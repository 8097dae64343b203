"""
Discovery classification.

A fixed pixel-difference threshold separates candidate anomalies from
stable, previously catalogued regions.
"""

from __future__ import annotations

from .models import DiscoveryType

ANOMALY_THRESHOLD = 1500


class DiscoveryClassifier:
    """Label a comparison by its difference count."""

    def __init__(self, threshold: int = ANOMALY_THRESHOLD):
        self.threshold = threshold

    def classify(self, diff_count: int) -> DiscoveryType:
        if diff_count > self.threshold:
            return DiscoveryType.SUPERNOVA
        return DiscoveryType.GALAXY

    def verdict(self, diff_count: int, label: DiscoveryType, degraded: bool = False) -> str:
        """Human-readable verdict for the report."""
        if label is DiscoveryType.SUPERNOVA:
            return (
                f"Potential transient detected: {diff_count} pixels differ "
                f"from the historical survey image"
            )
        if degraded:
            return "Reference comparison unavailable; region treated as stable"
        return "No significant change from the historical survey image; region is stable"
