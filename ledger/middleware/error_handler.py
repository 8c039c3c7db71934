"""
Digital Ledger Backend: Error Normalizer
=========================================

What:  The single translation point from a raised error to a client response.
How:   `ErrorNormalizer.render()` applies the Environment Mode policy.
       `ErrorBoundaryMiddleware` catches whatever escapes the security stages
       and the handlers. `register_exception_handlers()` sends Starlette
       HTTPExceptions and FastAPI request validation errors, which FastAPI
       would otherwise answer itself, to the same normalizer.

Response policy:
    Production:
        429                      → {"message": "Too many requests, please try again later."}
        anything else            → {"message": "An error occurred. Please try again later."}
    Non-production:
        anything                 → {"message": <error message>, "stack": <traceback>}
    Both modes:
        ValidationFailedError    → {"message": "Validation failed", "errors": [...]} (400)
        status                   → the error's own status_code (400-599), else 500

Security: production bodies never contain exception text or tracebacks.
Those are logged server-side instead.
"""

import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ledger.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)

PRODUCTION_MESSAGE = "An error occurred. Please try again later."
RATE_LIMITED_MESSAGE = "Too many requests, please try again later."
FALLBACK_MESSAGE = "Internal server error"


def status_code_for(exc: BaseException) -> int:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and 400 <= status <= 599:
        return status
    return 500


def message_for(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if message is None and isinstance(exc, StarletteHTTPException):
        message = exc.detail
    if message is None:
        message = str(exc)
    return str(message) if message else FALLBACK_MESSAGE


def field_errors_from(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten FastAPI/pydantic errors into {type, location, path, msg} entries."""
    errors = []
    for error in exc.errors():
        loc = tuple(error.get("loc", ()))
        errors.append({
            "type": "field",
            "location": str(loc[0]) if loc else "body",
            "path": ".".join(str(part) for part in loc[1:]),
            "msg": error.get("msg", "Invalid value"),
        })
    return errors


class ErrorNormalizer:
    """Renders errors per Environment Mode. Never raises."""

    def __init__(self, production: bool):
        self.production = production

    def render(self, exc: BaseException, request: Optional[Request] = None) -> JSONResponse:
        status = status_code_for(exc)
        path = request.url.path if request is not None else "-"

        if status >= 500:
            logger.error(
                "Unhandled error on %s: %s",
                path,
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        else:
            logger.warning("Request to %s failed with %d: %s", path, status, message_for(exc))

        headers = dict(getattr(exc, "headers", None) or {})

        if isinstance(exc, ValidationFailedError):
            content: Dict[str, Any] = {"message": exc.message, "errors": exc.errors}
        elif self.production:
            message = RATE_LIMITED_MESSAGE if status == 429 else PRODUCTION_MESSAGE
            content = {"message": message}
        else:
            content = {"message": message_for(exc)}
            if exc.__traceback__ is not None:
                content["stack"] = "".join(
                    traceback.format_exception(type(exc), exc, exc.__traceback__)
                )

        return JSONResponse(status_code=status, content=content, headers=headers or None)


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Turns any error raised further down the chain into a normalized response."""

    def __init__(self, app, normalizer: ErrorNormalizer):
        super().__init__(app)
        self.normalizer = normalizer

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self.normalizer.render(exc, request)


def register_exception_handlers(app: FastAPI, normalizer: ErrorNormalizer) -> None:
    """Route FastAPI's own error responses through the normalizer."""

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Accumulated field errors become a ValidationFailedError response."""
        return normalizer.render(ValidationFailedError(errors=field_errors_from(exc)), request)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return normalizer.render(exc, request)
