"""
Digital Ledger Backend: Origin Validator
=========================================

Decides whether a request's declared Origin may call the API.

Rules:
    - No Origin header: allowed (curl, server-to-server, mobile clients)
    - Production: allowed only if the origin contains an allowlist entry
    - Non-production: always allowed; origins that neither mention
      localhost nor match the allowlist are logged at DEBUG
"""

import logging
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


class OriginValidator:
    def __init__(self, allowlist: Iterable[str], production: bool):
        self.allowlist: Tuple[str, ...] = tuple(entry for entry in allowlist if entry)
        self.production = production

    def matches_allowlist(self, origin: str) -> bool:
        return any(allowed in origin for allowed in self.allowlist)

    def is_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        if self.production:
            return self.matches_allowlist(origin)
        if "localhost" in origin or self.matches_allowlist(origin):
            return True
        # Development fallback: permissive on mismatch.
        logger.debug("Allowing unlisted origin %s outside production", origin)
        return True
