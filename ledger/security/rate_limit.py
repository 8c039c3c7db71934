"""
Digital Ledger Backend: Rate Limit Policies and Store
======================================================

What:  Fixed-window request counters per route class and client.
How:   A `RateLimitPolicy` describes one route class (path prefix, window,
       budget). An `InMemoryRateLimitStore` holds one `WindowRecord` per
       (route class, client key) and is created by the app factory, then
       passed to RateLimitMiddleware by reference.

Algorithm: Fixed Window Counter
    1. First request of a window creates a record with count=1
    2. Each further request increments the count
    3. A count above the policy maximum is a rejection
    4. Once `window_start + window_seconds` has passed, the record is
       discarded and the next request opens a new window

Concurrency:
    `hit` and `decrement` do their read-modify-write without awaiting, so on a
    single event loop they cannot interleave with another coroutine.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from ledger.config import Settings

logger = logging.getLogger(__name__)

GENERAL = "general"
LOGIN = "login"
REGISTRATION = "registration"
PASSWORD_CHANGE = "password-change"

HEALTH_CHECK_PATHS = frozenset({"/health", "/api/health"})


@dataclass(frozen=True)
class RateLimitPolicy:
    """One route class and its request budget."""

    route_class: str
    path_prefix: str
    window_seconds: int
    max_requests: int
    message: str
    # Give the hit back when the handler answers with a status below 400
    skip_successful: bool = False
    skip_paths: FrozenSet[str] = field(default_factory=frozenset)

    def applies_to(self, path: str) -> bool:
        """Prefix match on whole path segments: /api/auth/login covers /api/auth/login/x."""
        if path in self.skip_paths:
            return False
        prefix = self.path_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


def default_policies(settings: Settings) -> Tuple[RateLimitPolicy, ...]:
    """Build the four route-class policies, general first."""
    return (
        RateLimitPolicy(
            route_class=GENERAL,
            path_prefix="/api/",
            window_seconds=15 * 60,
            max_requests=settings.rate_limit_general_max,
            message="Too many requests from this IP, please try again later.",
            skip_paths=HEALTH_CHECK_PATHS,
        ),
        RateLimitPolicy(
            route_class=LOGIN,
            path_prefix="/api/auth/login",
            window_seconds=15 * 60,
            max_requests=settings.rate_limit_login_max,
            message="Too many login attempts from this IP, please try again after 15 minutes.",
            skip_successful=True,
        ),
        RateLimitPolicy(
            route_class=REGISTRATION,
            path_prefix="/api/auth/register",
            window_seconds=60 * 60,
            max_requests=settings.rate_limit_register_max,
            message="Too many accounts created from this IP, please try again after an hour.",
        ),
        RateLimitPolicy(
            route_class=PASSWORD_CHANGE,
            path_prefix="/api/auth/change-password",
            window_seconds=15 * 60,
            max_requests=settings.rate_limit_password_change_max,
            message="Too many password change attempts, please try again later.",
        ),
    )


@dataclass
class WindowRecord:
    route_class: str
    client_key: str
    window_start: float
    window_seconds: int
    count: int = 0

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window_seconds

    def expired(self, now: float) -> bool:
        return now >= self.reset_at


class InMemoryRateLimitStore:
    """
    Process-local window records keyed by (route class, client key).

    Args:
        clock: Returns the current wall-clock time in seconds. Tests pass a
               fake clock to move between windows without sleeping.

    Records are expired lazily on access, and `sweep()` runs every
    SWEEP_EVERY hits to evict records nobody touched again.
    """

    SWEEP_EVERY = 1000

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: Dict[Tuple[str, str], WindowRecord] = {}
        self._hits_since_sweep = 0

    def now(self) -> float:
        return self._clock()

    async def hit(self, policy: RateLimitPolicy, client_key: str) -> WindowRecord:
        """Count one request and return the (possibly new) window record."""
        now = self._clock()
        key = (policy.route_class, client_key)
        record = self._records.get(key)
        if record is None or record.expired(now):
            record = WindowRecord(
                route_class=policy.route_class,
                client_key=client_key,
                window_start=now,
                window_seconds=policy.window_seconds,
            )
            self._records[key] = record
        record.count += 1

        self._hits_since_sweep += 1
        if self._hits_since_sweep >= self.SWEEP_EVERY:
            self.sweep()
        return record

    async def decrement(self, policy: RateLimitPolicy, client_key: str) -> None:
        """Give back one hit in the current window, if the window is still open."""
        record = self._records.get((policy.route_class, client_key))
        if record is not None and not record.expired(self._clock()) and record.count > 0:
            record.count -= 1

    async def get(self, route_class: str, client_key: str) -> Optional[WindowRecord]:
        """Current record for a partition, or None if absent or expired."""
        key = (route_class, client_key)
        record = self._records.get(key)
        if record is not None and record.expired(self._clock()):
            del self._records[key]
            return None
        return record

    async def reset(self, client_key: Optional[str] = None) -> None:
        """Forget one client's records, or every record when no key is given."""
        if client_key is None:
            self._records.clear()
            return
        for key in [k for k in self._records if k[1] == client_key]:
            del self._records[key]

    def sweep(self) -> int:
        """Evict expired records. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, record in self._records.items() if record.expired(now)]
        for key in expired:
            del self._records[key]
        self._hits_since_sweep = 0
        if expired:
            logger.debug("Evicted %d expired rate-limit windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
