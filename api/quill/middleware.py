"""Request logging and security headers."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths not worth a log line per request
QUIET_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
QUIET_PATH_PREFIXES = ("/vault/",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of each API call."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)

        path = request.url.path
        if path in QUIET_PATHS or path.startswith(QUIET_PATH_PREFIXES):
            return response

        elapsed_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"{request.method} {path} -> {response.status_code} ({elapsed_ms:.1f} ms)",
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the fixed set of browser hardening headers to every response."""

    STATIC_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
        # JSON and uploaded images only
        "Content-Security-Policy": "; ".join(
            [
                "default-src 'none'",
                "img-src 'self'",
                "frame-ancestors 'none'",
                "base-uri 'none'",
                "form-action 'none'",
            ]
        ),
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(self.STATIC_HEADERS)

        if request.url.scheme == "https" or os.getenv("ENVIRONMENT") == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
