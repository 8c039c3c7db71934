"""
Digital Ledger Backend: Request Security Pipeline
==================================================

What:  Assembles the security stages into one middleware chain.
How:   `install_security_pipeline()` adds the middleware innermost first
       (Starlette executes the last added first), registers the error
       handlers and makes SanitizedRoute the app's default route class.

Request order:
    1. Body size limit      (reject oversized payloads before parsing)
    2. Origin validation    (production: reject unlisted origins)
    3. Security headers     (on every response, errors included)
    4. HTTPS redirect       (production only)
    5. Rate limiting        (general, then route class)
    6. Input sanitization   (SanitizedRoute, right before the endpoint)
    7. Application handler
    8. Error normalization  (ErrorBoundaryMiddleware + FastAPI handlers)

Stage 3 wraps the error boundary rather than sitting between stages 2 and 4,
so responses produced by the normalizer leave with the same headers.
"""

import logging
from typing import Optional

from fastapi import FastAPI

from ledger.config import Settings
from ledger.middleware.body_limit import BodySizeLimitMiddleware
from ledger.middleware.cors import OriginPolicyMiddleware
from ledger.middleware.error_handler import (
    ErrorBoundaryMiddleware,
    ErrorNormalizer,
    register_exception_handlers,
)
from ledger.middleware.https_redirect import HTTPSRedirectMiddleware
from ledger.middleware.rate_limit import RateLimitMiddleware
from ledger.middleware.security_headers import SecurityHeadersMiddleware
from ledger.security.headers import HeaderPolicy
from ledger.security.origin import OriginValidator
from ledger.security.rate_limit import InMemoryRateLimitStore, default_policies
from ledger.security.sanitizer import SanitizedRoute

logger = logging.getLogger(__name__)


def install_security_pipeline(
    app: FastAPI,
    settings: Settings,
    rate_limit_store: Optional[InMemoryRateLimitStore] = None,
) -> InMemoryRateLimitStore:
    """
    Install every security stage on `app` and return the rate-limit store.

    Must run before routes are added to the app itself, so that app-level
    routes pick up SanitizedRoute. Routers carry their own route_class.
    """
    production = settings.is_production
    store = rate_limit_store if rate_limit_store is not None else InMemoryRateLimitStore()
    normalizer = ErrorNormalizer(production=production)
    validator = OriginValidator(settings.origin_allowlist, production=production)

    app.router.route_class = SanitizedRoute
    register_exception_handlers(app, normalizer)

    # Innermost first.
    app.add_middleware(RateLimitMiddleware, store=store, policies=default_policies(settings))
    if production:
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(OriginPolicyMiddleware, validator=validator)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(ErrorBoundaryMiddleware, normalizer=normalizer)
    app.add_middleware(SecurityHeadersMiddleware, policy=HeaderPolicy(production=production))

    app.state.rate_limit_store = store
    app.state.error_normalizer = normalizer
    app.state.origin_validator = validator

    logger.info(
        "Security pipeline installed (mode=%s, origins=%d)",
        "production" if production else settings.node_env,
        len(validator.allowlist),
    )
    return store
