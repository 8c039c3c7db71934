"""
Digital Ledger Backend: Header Policy
======================================

The fixed set of protective response headers. Built once per app; the
only environment-dependent part is the CSP `upgrade-insecure-requests`
directive, which is emitted in production only.
"""

from typing import Dict, List, Tuple

STORAGE_ORIGIN = "https://storage.googleapis.com"
FONT_STYLES_ORIGIN = "https://fonts.googleapis.com"
FONT_FILES_ORIGIN = "https://fonts.gstatic.com"

HSTS_MAX_AGE = 31_536_000  # 1 year

CSP_DIRECTIVES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("default-src", ("'self'",)),
    ("base-uri", ("'self'",)),
    ("script-src", ("'self'", "'unsafe-inline'", "'unsafe-eval'", STORAGE_ORIGIN)),
    ("script-src-attr", ("'none'",)),
    ("style-src", ("'self'", "'unsafe-inline'", FONT_STYLES_ORIGIN)),
    ("img-src", ("'self'", "data:", "blob:", "https:", "http:", STORAGE_ORIGIN)),
    ("font-src", ("'self'", "data:", FONT_FILES_ORIGIN)),
    ("connect-src", ("'self'", STORAGE_ORIGIN, "wss:", "ws:")),
    ("media-src", ("'self'", STORAGE_ORIGIN, "blob:")),
    ("object-src", ("'none'",)),
    ("frame-src", ("'self'",)),
    ("frame-ancestors", ("'self'",)),
    ("form-action", ("'self'",)),
)


def build_content_security_policy(production: bool) -> str:
    parts: List[str] = [f"{name} {' '.join(sources)}" for name, sources in CSP_DIRECTIVES]
    if production:
        parts.append("upgrade-insecure-requests")
    return "; ".join(parts)


class HeaderPolicy:
    """Computes the protective header set for one Environment Mode."""

    def __init__(self, production: bool):
        self.production = production
        self.headers: Dict[str, str] = {
            "Content-Security-Policy": build_content_security_policy(production),
            "Strict-Transport-Security": f"max-age={HSTS_MAX_AGE}; includeSubDomains; preload",
            "X-Content-Type-Options": "nosniff",
            "X-XSS-Protection": "1; mode=block",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "X-Frame-Options": "SAMEORIGIN",
            "Cross-Origin-Opener-Policy": "same-origin",
            "Cross-Origin-Resource-Policy": "cross-origin",
            "Origin-Agent-Cluster": "?1",
            "X-DNS-Prefetch-Control": "off",
            "X-Download-Options": "noopen",
            "X-Permitted-Cross-Domain-Policies": "none",
        }
