"""
Digital Ledger Backend: Security Headers Middleware
====================================================

Stamps the HeaderPolicy headers onto every response. Installed outside the
error boundary, so error responses, rate-limit rejections and redirects
carry the same headers as successful ones. Never blocks a request.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ledger.security.headers import HeaderPolicy


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, policy: HeaderPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(self.policy.headers)
        return response
