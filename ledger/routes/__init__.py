# Routes package init
"""
Digital Ledger Backend: API Routes Package
===========================================

Route Inventory:
    - health.py:  GET  /health, GET /api/health   (service health check)
    - auth.py:    POST /api/auth/register         (create local account)
                  POST /api/auth/login            (check credentials)
                  POST /api/auth/change-password  (replace password)

Every router uses SanitizedRoute, so handlers only ever see sanitized
query strings, path parameters and bodies.
"""
