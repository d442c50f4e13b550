"""
JBin Backend — Request Logging Middleware
===========================================

What:  One access log line per API request.
How:   Times the downstream call and logs method, path, status, duration,
       request ID and client address at a level chosen by status class.
Who:   Runs just inside RequestIDMiddleware, so the ID is already set.

Line format:
    POST /api/blobs 201 4.2ms [a1b2c3d4] from 203.0.113.7

Never logged: request bodies (documents are user content) or headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.rate_limit import client_address
from app.middleware.request_id import request_id_var

logger = logging.getLogger("jbin.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging for everything except health probes.

    Level by status:
        5xx → ERROR, 4xx → WARNING, otherwise INFO
    """

    QUIET_PATHS = {"/api/health"}

    def __init__(self, app, trust_proxy: bool = True):
        super().__init__(app)
        self.trust_proxy = trust_proxy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        client_ip = client_address(request, self.trust_proxy)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
