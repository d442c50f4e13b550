"""
JBin Backend — Request ID Middleware
======================================

What:  Tags every request with a short correlation ID.
How:   Reuses a well-formed client X-Request-ID or generates one, stores it in
       a ContextVar for loggers/error handlers, and echoes it in the response.
Who:   Outermost JBin middleware (only CORS wraps it).

The ID appears in:
    - every access log line
    - the `request_id` field of every error body
    - the X-Request-ID response header
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client IDs end up in logs; anything outside this shape is replaced
_CLIENT_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,64}")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request ID before any other JBin middleware runs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Request-ID", "")
        rid = supplied if _CLIENT_ID_PATTERN.fullmatch(supplied) else new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
