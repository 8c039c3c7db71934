# Security package init
"""
Digital Ledger Backend: Security Policies
==========================================

Framework-independent policy objects used by the request pipeline:

    - origin.py:     OriginValidator (allow/deny per Origin header)
    - headers.py:    HeaderPolicy (CSP, HSTS and the other protective headers)
    - rate_limit.py: RateLimitPolicy, WindowRecord, InMemoryRateLimitStore
    - sanitizer.py:  sanitize() and the SanitizedRoute FastAPI route class

The middleware in ledger.middleware wires these into Starlette.
"""
