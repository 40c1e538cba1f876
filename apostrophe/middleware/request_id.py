"""
Apostrophe Backend — Request ID Middleware
============================================

What:  Assigns a short correlation ID to each request and echoes it back.
Why:   An AI call writes several log lines (one per provider tried); the ID
       ties them to the request that caused them, and error bodies carry it
       so a user can quote it.
How:   Reuses the client's X-Request-ID when it looks like an ID (short,
       no spaces or control characters), else a fresh 8-char UUID prefix.
       Stored in a ContextVar for loggers and exception handlers.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"

# Client IDs end up in log lines; keep them to one printable token
_CLIENT_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(HEADER, "")
        rid = supplied if _CLIENT_ID.match(supplied) else new_request_id()

        # Left set after the call: the catch-all 500 handler runs outside this middleware
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers[HEADER] = rid
        return response
