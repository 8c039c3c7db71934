"""
Digital Ledger Backend: Application Package
============================================

Architecture:

    ┌─────────────────────────────────────┐
    │   Security Pipeline (middleware)    │  ← size, origin, headers, HTTPS,
    │                                     │    rate limits, sanitization, errors
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← User Store, OAuth resolver, auth
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

The policy objects (rate-limit store, origin validator, header policy and
the sanitize() rules) live in ledger.security and know nothing about ASGI.
The middleware in ledger.middleware adapts them to Starlette. The one
exception is ledger.security.sanitizer, which also ships SanitizedRoute, the
FastAPI route class that applies the rules after routing.
"""

__version__ = "1.0.0"
