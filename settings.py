"""
Centralized configuration for AstroVision.

Every setting can be overridden from the environment. Settings are read
once per call to Settings.from_env() and passed explicitly to the pipeline;
no module holds mutable configuration.

Environment Variables (override defaults):
    ASTROMETRY_API_KEY          - astrometry.net API key (plate solving)
    ASTROMETRY_API_URL          - astrometry.net API base URL
    SKYVIEW_URL                 - SkyView query endpoint
    SKYVIEW_SURVEY              - Survey used for reference images
    HF_API_KEY                  - Inference key for the vision/chat services
    SOLVER_POLL_ATTEMPTS        - Poll budget for a submission
    SOLVER_POLL_INTERVAL        - Seconds between polls
    HTTP_TIMEOUT                - Per-request timeout (seconds)
    DISCOVERY_DEADLINE          - End-to-end deadline per run (seconds)
    DEGRADED_COMPARISON_POLICY  - "stable" or "fail"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from discovery.plate_solver import ASTROMETRY_NET_URL
from discovery.reference import DEFAULT_SURVEY, SKYVIEW_URL

DEGRADED_POLICIES = ("stable", "fail")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for one process."""
    astrometry_api_key: Optional[str] = None
    astrometry_api_url: str = ASTROMETRY_NET_URL
    skyview_url: str = SKYVIEW_URL
    skyview_survey: str = DEFAULT_SURVEY
    hf_api_key: Optional[str] = None
    poll_attempts: int = 20
    poll_interval: float = 3.0
    http_timeout: float = 30.0
    discovery_deadline: Optional[float] = 180.0
    degraded_policy: str = "stable"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        policy = env.get("DEGRADED_COMPARISON_POLICY", "stable").strip().lower()
        if policy not in DEGRADED_POLICIES:
            raise ValueError(
                f"DEGRADED_COMPARISON_POLICY must be one of {DEGRADED_POLICIES}, got {policy!r}"
            )

        deadline = float(env.get("DISCOVERY_DEADLINE", "180"))

        return cls(
            astrometry_api_key=env.get("ASTROMETRY_API_KEY") or None,
            astrometry_api_url=env.get("ASTROMETRY_API_URL", ASTROMETRY_NET_URL),
            skyview_url=env.get("SKYVIEW_URL", SKYVIEW_URL),
            skyview_survey=env.get("SKYVIEW_SURVEY", DEFAULT_SURVEY),
            hf_api_key=env.get("HF_API_KEY") or None,
            poll_attempts=int(env.get("SOLVER_POLL_ATTEMPTS", "20")),
            poll_interval=float(env.get("SOLVER_POLL_INTERVAL", "3.0")),
            http_timeout=float(env.get("HTTP_TIMEOUT", "30.0")),
            # 0 or a negative value disables the deadline
            discovery_deadline=deadline if deadline > 0 else None,
            degraded_policy=policy,
        )


if __name__ == "__main__":
    settings = Settings.from_env()
    print("AstroVision Settings")
    print("=" * 50)
    print(f"ASTROMETRY_API_URL:   {settings.astrometry_api_url}")
    print(f"ASTROMETRY_API_KEY:   {'set' if settings.astrometry_api_key else 'unset'}")
    print(f"SKYVIEW_URL:          {settings.skyview_url}")
    print(f"SKYVIEW_SURVEY:       {settings.skyview_survey}")
    print(f"HF_API_KEY:           {'set' if settings.hf_api_key else 'unset'}")
    print(f"POLL:                 {settings.poll_attempts} x {settings.poll_interval}s")
    print(f"HTTP_TIMEOUT:         {settings.http_timeout}s")
    print(f"DISCOVERY_DEADLINE:   {settings.discovery_deadline}")
    print(f"DEGRADED POLICY:      {settings.degraded_policy}")
