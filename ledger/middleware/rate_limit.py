"""
Digital Ledger Backend: Rate Limiting Middleware
=================================================

What:  Per-client fixed-window rate limiting per route class.
How:   For every policy whose prefix matches the request path, count a hit in
       the shared store; raise RateLimitExceededError as soon as one policy's
       budget is exceeded. Policies run in order: general first, then the
       narrower auth classes, so a login request spends from both budgets.
Who:   Installed by the pipeline composer after the HTTPS redirect.

Login outcomes:
    The login class only counts failed attempts. The middleware wraps the
    handler, and when the response status is below 400 it gives the hit back.
    Handler errors count as failures, and the RateLimit-* headers are merged
    into the raised error so the normalized response carries them.

Response headers (standard draft, seconds-based):
    RateLimit-Limit, RateLimit-Remaining, RateLimit-Reset on every limited
    response (the most specific matching policy wins), plus Retry-After on
    rejections.
"""

import logging
import math
from typing import Dict, Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ledger.exceptions import LedgerError, RateLimitExceededError
from ledger.security.rate_limit import InMemoryRateLimitStore, RateLimitPolicy, WindowRecord

logger = logging.getLogger(__name__)


def client_key_for(request: Request) -> str:
    """Partition key: the source network address."""
    return getattr(request.client, "host", "unknown") if request.client else "unknown"


def rate_limit_headers(policy: RateLimitPolicy, record: WindowRecord, now: float) -> Dict[str, str]:
    return {
        "RateLimit-Limit": str(policy.max_requests),
        "RateLimit-Remaining": str(max(0, policy.max_requests - record.count)),
        "RateLimit-Reset": str(max(0, math.ceil(record.reset_at - now))),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching RateLimitPolicy to the request.

    Args:
        store:    Shared window store (constructed by the app factory)
        policies: Ordered policies, general first
    """

    def __init__(self, app, store: InMemoryRateLimitStore, policies: Iterable[RateLimitPolicy]):
        super().__init__(app)
        self.store = store
        self.policies: Tuple[RateLimitPolicy, ...] = tuple(policies)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        matched = [policy for policy in self.policies if policy.applies_to(path)]
        if not matched:
            return await call_next(request)

        client_key = client_key_for(request)
        headers: Dict[str, str] = {}

        for policy in matched:
            record = await self.store.hit(policy, client_key)
            now = self.store.now()
            headers = rate_limit_headers(policy, record, now)

            if record.count > policy.max_requests:
                retry_after = max(1, math.ceil(record.reset_at - now))
                logger.warning(
                    "Rate limit exceeded for %s on %s: %d requests in %ds window (%s)",
                    client_key,
                    path,
                    record.count,
                    policy.window_seconds,
                    policy.route_class,
                )
                raise RateLimitExceededError(
                    route_class=policy.route_class,
                    message=policy.message,
                    retry_after=retry_after,
                    headers={**headers, "Retry-After": str(retry_after)},
                )

        try:
            response = await call_next(request)
        except LedgerError as exc:
            # Handler failures still answer with the limit headers.
            exc.headers = {**headers, **exc.headers}
            raise

        if response.status_code < 400:
            for policy in matched:
                if policy.skip_successful:
                    await self.store.decrement(policy, client_key)

        response.headers.update(headers)
        return response
