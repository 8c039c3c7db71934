"""
Digital Ledger Backend: HTTPS Redirect (production only)
=========================================================

TLS terminates at the platform proxy, which reports the original scheme in
X-Forwarded-Proto. Anything other than "https" gets a permanent redirect to
the same host, path and query over HTTPS.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response


def https_url_for(request: Request) -> str:
    host = request.headers.get("host", request.url.netloc)
    url = f"https://{host}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.headers.get("x-forwarded-proto") != "https":
            return RedirectResponse(https_url_for(request), status_code=301)
        return await call_next(request)
