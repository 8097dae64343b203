#!/usr/bin/env python3
"""
Run Discovery - Plate-solve a local sky photo and compare it with the survey.

This script:
1. Reads an image from disk
2. Runs the full discovery pipeline (solve, reference, compare, classify)
3. Prints the report as JSON

Usage:
    python scripts/run_discovery.py photo.jpg
    python scripts/run_discovery.py photo.jpg --api-key KEY --deadline 300
    python scripts/run_discovery.py photo.jpg --fail-on-degraded
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from discovery import Deadline, DiscoveryError, DiscoveryPipeline
from settings import Settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="AstroVision discovery on a local image")
    parser.add_argument("image", type=Path, help="Path to the sky photo")
    parser.add_argument("--api-key", type=str, default=None,
                        help="astrometry.net API key (default: ASTROMETRY_API_KEY)")
    parser.add_argument("--deadline", type=float, default=None,
                        help="End-to-end deadline in seconds, 0 disables it (default: DISCOVERY_DEADLINE)")
    parser.add_argument("--fail-on-degraded", action="store_true",
                        help="Fail instead of reporting stable when the comparison is unavailable")
    args = parser.parse_args(argv)

    if not args.image.is_file():
        logger.error(f"Image not found: {args.image}")
        return 1

    settings = Settings.from_env()
    overrides = {}
    if args.api_key:
        overrides["astrometry_api_key"] = args.api_key
    if args.fail_on_degraded:
        overrides["degraded_policy"] = "fail"
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    deadline_seconds = args.deadline if args.deadline is not None else settings.discovery_deadline
    pipeline = DiscoveryPipeline.from_settings(settings)

    try:
        report = pipeline.run(args.image.read_bytes(), deadline=Deadline(deadline_seconds))
    except DiscoveryError as e:
        logger.error(f"Discovery failed at {e.stage}: {e}")
        print(json.dumps({"error": str(e)}, indent=2))
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
