# Middleware package init
"""
Digital Ledger Backend: Middleware Package
===========================================

Cross-cutting request handling applied to every route.

Request order (outermost first, see ledger.pipeline):
    [Request ID] → [Access Log] → [Security Headers] → [Error Boundary]
        → [Body Size Limit] → [Origin Policy / CORS] → [HTTPS Redirect]
        → [Rate Limit] → router → SanitizedRoute → handler

Starlette runs the last added middleware first, so the composer adds them
innermost first. Errors raised anywhere below the boundary come back up to
ErrorBoundaryMiddleware and leave as normalized JSON, which the security
headers middleware then decorates on the way out.
"""
