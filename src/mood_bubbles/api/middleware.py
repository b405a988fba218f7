"""Middleware — CORS, shared-secret authentication, request logging, error handling.

Reads are public (leaderboard, profile lookup); writes need the shared
secret the game's proxy injects, so the secret never ships to the browser.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mood_bubbles.config import get_settings
from mood_bubbles.logger import bind_run, clear_run

logger = structlog.get_logger(__name__)

_PLACEHOLDER_SECRETS = ("change-me-to-a-random-secret", "")
_READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
DEVICE_HEADER = "X-Device-Id"


# ── CORS ──────────────────────────────────────────────────────


def add_cors(app: FastAPI) -> None:
    """Configure CORS from ``settings.cors_origins`` (comma-separated or ``*``)."""
    settings = get_settings()
    origins_raw = settings.cors_origins.strip()

    if origins_raw == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in origins_raw.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "Authorization", DEVICE_HEADER],
    )


# ── Shared-secret authentication ──────────────────────────────


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Verify ``X-API-Key`` or ``Authorization: Bearer <key>`` on writes.

    Disabled when ``api_secret_key`` is the default placeholder.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()

        if settings.api_secret_key in _PLACEHOLDER_SECRETS or request.method in _READ_METHODS:
            return await call_next(request)

        api_key = (
            request.headers.get("X-API-Key")
            or _extract_bearer(request.headers.get("Authorization", ""))
        )
        if api_key != settings.api_secret_key:
            logger.warning("http.unauthorized", path=request.url.path, method=request.method)
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key."})

        return await call_next(request)


# ── Request logging ───────────────────────────────────────────


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each game request with the calling device attached.

    Game clients send ``X-Device-Id``; it is bound for the lifetime of the
    request so repository and route events carry it too.  Health checks
    are not logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        bind_run(device=request.headers.get(DEVICE_HEADER))
        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - start) * 1000
        if request.url.path != "/health":
            logger.info(
                "http.request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                elapsed_ms=elapsed_ms,
            )
        clear_run()
        return response


# ── Global error handler ─────────────────────────────────────


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn anything a route lets escape into a JSON 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("http.unhandled_error", path=request.url.path, error=type(exc).__name__)
            clear_run()
            return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ── Setup helper ──────────────────────────────────────────────


def setup_middleware(app: FastAPI) -> None:
    """Wire all middleware into the FastAPI application.

    Outermost first: error handler, request logging, CORS, secret check.
    CORS sits outside the secret check so pre-flight requests and 401s
    still carry CORS headers.
    """
    # Add from innermost → outermost (Starlette reverses the stack)
    app.add_middleware(APIKeyMiddleware)
    add_cors(app)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)


# ── Helpers ───────────────────────────────────────────────────


def _extract_bearer(auth_header: str) -> str:
    scheme, _, token = auth_header.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""
