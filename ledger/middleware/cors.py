"""
Digital Ledger Backend: Origin Validation Middleware
=====================================================

What:  CORS handling with the Digital Ledger origin rules.
How:   Subclasses Starlette's CORSMiddleware (which already handles preflight,
       credential headers and origin echoing) and swaps its origin check for
       OriginValidator. In production a disallowed origin is rejected with
       OriginRejectedError before the request goes any further.

Preflight:
    OPTIONS requests carrying Access-Control-Request-Method are answered here
    and never reach the rate limiter or a handler. Max-Age: 86400 seconds.
"""

import logging

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from ledger.exceptions import OriginRejectedError
from ledger.security.origin import OriginValidator

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
ALLOWED_HEADERS = ("Content-Type", "Authorization", "X-Requested-With")
PREFLIGHT_MAX_AGE = 86400  # 24 hours


class OriginPolicyMiddleware(CORSMiddleware):
    def __init__(self, app: ASGIApp, validator: OriginValidator):
        super().__init__(
            app,
            allow_origins=(),
            allow_methods=ALLOWED_METHODS,
            allow_headers=ALLOWED_HEADERS,
            allow_credentials=True,
            expose_headers=("X-Request-ID", "Retry-After"),
            max_age=PREFLIGHT_MAX_AGE,
        )
        self.validator = validator

    def is_allowed_origin(self, origin: str) -> bool:
        return self.validator.is_allowed(origin)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if origin is not None and not self.validator.is_allowed(origin):
                logger.warning("Rejected request from disallowed origin %s", origin)
                raise OriginRejectedError(origin)
        await super().__call__(scope, receive, send)
