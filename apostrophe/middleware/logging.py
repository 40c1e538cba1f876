"""
Apostrophe Backend — Request Logging Middleware
=================================================

What:  One access-log line per HTTP request with status and duration.
Why:   AI endpoints can take from milliseconds (cached Gemini) to minutes
       (local model cold start); the duration column makes that visible.
How:   Times the call, picks the level from the status class, logs with
       the request ID from RequestIDMiddleware. Requests slower than
       SLOW_REQUEST_MS are tagged so a stuck provider is easy to spot.
Who:   Applied to every request via Starlette middleware.

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, request ID
    Never log: request bodies (note content, prompts, API keys)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from apostrophe.middleware.request_id import request_id_var

logger = logging.getLogger("apostrophe.access")

# Polled by the desktop shell / fetched once per image on every note open
QUIET_PREFIXES = ("/health", "/api/files/")

SLOW_REQUEST_MS = 10_000


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log: 5xx → ERROR, 4xx → WARNING, everything else → INFO."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PREFIXES):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.log(
            level_for_status(response.status_code),
            "%s %s → %d in %.0fms%s [%s]",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            " (slow)" if elapsed_ms >= SLOW_REQUEST_MS else "",
            request_id_var.get(""),
        )
        return response
