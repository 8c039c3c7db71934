"""
Digital Ledger Backend: Request Logging Middleware
===================================================

What:  One access-log line per HTTP request.
How:   Measures wall time around the rest of the chain and logs method, path,
       status, duration, request ID and client address. Severity follows the
       status class: 5xx → ERROR, 4xx → WARNING, otherwise INFO.

What we log vs what we don't:
    Logged:     method, path, status, duration, client IP, request ID
    Not logged: bodies, query strings, cookies, Authorization headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ledger.middleware.request_id import request_id_var
from ledger.security.rate_limit import HEALTH_CHECK_PATHS

logger = logging.getLogger("ledger.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Health checks are not logged: probes hit them every few seconds.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in HEALTH_CHECK_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
