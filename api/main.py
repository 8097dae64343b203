"""
FastAPI application for AstroVision.

Single discovery endpoint: a base64 photo in, a discovery report out.

Usage:
    python -m api.main              # Start API on port 8000
    python -m api.main --port 9000
"""

from __future__ import annotations

import argparse
import base64
import binascii
import logging
import re
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from discovery import (
    AuthenticationError,
    ComparisonUnavailable,
    DeadlineExceeded,
    DiscoveryError,
    DiscoveryPipeline,
    InvalidImageError,
    SolvingServiceError,
    SolvingTimeout,
    TransportError,
)
from settings import Settings

from .models import DiscoveryRequest, DiscoveryResponse, ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,", re.IGNORECASE)

# Status codes per failure type; anything else is a 500.
_ERROR_STATUS = (
    (InvalidImageError, 400),
    (SolvingTimeout, 504),
    (DeadlineExceeded, 504),
    (AuthenticationError, 502),
    (SolvingServiceError, 502),
    (TransportError, 502),
    (ComparisonUnavailable, 502),
)


def get_settings() -> Settings:
    """Settings are read from the environment on each request."""
    return Settings.from_env()


def get_pipeline(settings: Settings = Depends(get_settings)) -> DiscoveryPipeline:
    """A fresh pipeline per request; runs share no state."""
    return DiscoveryPipeline.from_settings(settings)


def decode_image_payload(payload: str) -> bytes:
    """Decode a base64 image, with or without a data: URL prefix."""
    data = _DATA_URL_PREFIX.sub("", payload.strip())
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Image payload is not valid base64: {e}") from e


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings = get_settings()
    if not settings.astrometry_api_key:
        logger.warning("ASTROMETRY_API_KEY not set; discovery requests will fail at login")
    logger.info("AstroVision API started")
    yield
    logger.info("AstroVision API shutting down")


app = FastAPI(
    title="AstroVision API",
    description="Plate-solve sky photos and compare them with historical survey images",
    version=VERSION,
    lifespan=lifespan,
)

# CORS for UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# Error Handling
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError):
    status = 500
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status = code
            break
    logger.error(f"Discovery failed at {exc.stage}: {exc}")
    return JSONResponse(status_code=status, content=ErrorResponse(error=str(exc)).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=ErrorResponse(error=messages).model_dump())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=ErrorResponse(error=str(exc) or type(exc).__name__).model_dump())


# ─────────────────────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=VERSION,
        plate_solver_configured=bool(settings.astrometry_api_key),
        inference_configured=bool(settings.hf_api_key),
    )


@app.post(
    "/discover",
    response_model=DiscoveryResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
def discover(body: DiscoveryRequest, pipeline: DiscoveryPipeline = Depends(get_pipeline)):
    """
    Run the discovery pipeline on a submitted photo.

    Plate solving polls the solver for up to a minute by default, so this
    endpoint is sync and runs in the worker thread pool.
    """
    image_bytes = decode_image_payload(body.image_base64)
    if body.question:
        logger.debug(f"Discovery question: {body.question}")

    report = pipeline.run(image_bytes)
    return report.to_dict()


def main():
    parser = argparse.ArgumentParser(description="AstroVision API")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host (default: 0.0.0.0)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
