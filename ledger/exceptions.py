"""
Digital Ledger Backend: Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for every rejection the request
       pipeline and the services can produce.
How:   Each exception class carries an HTTP status code, a message, an
       optional context dict and optional response headers. The error
       normalizer (ledger.middleware.error_handler) is the only place that
       turns them into client responses.

Exception Hierarchy:
    LedgerError (base)                → 500
    ├── BadRequestError               → 400 (malformed request framing)
    ├── ValidationFailedError         → 400 (field-level errors, returned verbatim)
    ├── AuthenticationError           → 401
    ├── OriginRejectedError           → 403 (production CORS denial)
    ├── NotFoundError                 → 404
    ├── ConflictError                 → 409
    ├── PayloadTooLargeError          → 413
    ├── RateLimitExceededError        → 429
    └── DatabaseError                 → 500
"""

from typing import Any, Dict, List, Optional


class LedgerError(Exception):
    """
    Base exception for all Digital Ledger application errors.

    Attributes:
        status_code: HTTP status the normalizer responds with
        message:     Error description (only shown to clients outside production)
        context:     Additional debug info (logged, never returned)
        headers:     Extra response headers (e.g. Retry-After)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.context = context or {}
        self.headers = headers or {}
        super().__init__(self.message)


class BadRequestError(LedgerError):
    """Raised when the request itself is malformed (e.g. a bad Content-Length)."""

    status_code = 400

    def __init__(self, message: str = "Bad request", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class ValidationFailedError(LedgerError):
    """
    Raised when accumulated field validation errors are non-empty.

    Field errors are not considered sensitive: the normalizer returns them
    as-is in every environment.

    Each entry looks like:
        {"type": "field", "location": "body", "path": "email", "msg": "Invalid email address"}
    """

    status_code = 400

    def __init__(
        self,
        errors: List[Dict[str, Any]],
        message: str = "Validation failed",
    ):
        super().__init__(message=message, context={"error_count": len(errors)})
        self.errors = errors


class AuthenticationError(LedgerError):
    """Raised when credentials are wrong or the account cannot sign in."""

    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message)


class OriginRejectedError(LedgerError):
    """
    Raised when a production request carries an Origin outside the allowlist.

    HTTP: 403 Forbidden. Raised by the origin middleware before any handler runs.
    """

    status_code = 403

    def __init__(self, origin: str):
        super().__init__(message="Not allowed by CORS", context={"origin": origin})
        self.origin = origin


class NotFoundError(LedgerError):
    """Raised when a requested resource does not exist."""

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(LedgerError):
    """Raised when a write would violate a uniqueness rule (e.g. duplicate email)."""

    status_code = 409

    def __init__(self, message: str = "Resource already exists", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class PayloadTooLargeError(LedgerError):
    """
    Raised when a JSON or URL-encoded body exceeds the configured size cap.

    HTTP: 413 Payload Too Large. Raised before any parsing work is done.
    """

    status_code = 413

    def __init__(self, limit: int, length: int):
        super().__init__(
            message="request entity too large",
            context={"limit": limit, "length": length},
        )
        self.limit = limit
        self.length = length


class RateLimitExceededError(LedgerError):
    """
    Raised when a client exceeds a route class's request budget.

    HTTP: 429 Too Many Requests.
    The message is the route class's own text; production responses replace
    it with a fixed one. `headers` carries Retry-After and RateLimit-*.
    """

    status_code = 429

    def __init__(
        self,
        route_class: str,
        message: str,
        retry_after: int,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            message=message,
            context={"route_class": route_class, "retry_after": retry_after},
            headers=headers,
        )
        self.route_class = route_class
        self.retry_after = retry_after


class DatabaseError(LedgerError):
    """
    Raised when database operations fail unexpectedly.

    The underlying driver error is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
