"""
Digital Ledger Backend: Input Sanitizer
========================================

What:  Strips script tags, `javascript:` URIs and inline event-handler
       attributes from every string value of inbound request data.
How:   `sanitize()` walks mappings, lists and tuples and rewrites string
       leaves with the ordered Sanitization Policy. `SanitizedRoute` applies
       it to the body, query string and path parameters of each request
       right before the endpoint runs (after all middleware).

Limitations:
    This is a regex pass over text, not an HTML parser. Split or nested tags
    can reassemble into a live tag after one pass, and ordinary text such as
    `condition=` loses its `ondition=` tail. Output encoding at render time is
    still required; tests/test_sanitizer.py pins the known gaps.
"""

import json
import logging
import re
from typing import Any, Callable, Coroutine, Optional
from urllib.parse import parse_qsl, urlencode

from fastapi.routing import APIRoute
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# ── Sanitization Policy ───────────────────────────────────────────────────
# Applied in order to every string leaf.
SANITIZATION_POLICY = (
    # <script ...>...</script>, non-greedy across embedded tags
    (re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE), ""),
    # javascript: URI scheme
    (re.compile(r"javascript:", re.IGNORECASE), ""),
    # onclick=, onload = ... (ASCII word characters only)
    (re.compile(r"on\w+\s*=", re.IGNORECASE | re.ASCII), ""),
)

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def sanitize_string(value: str) -> str:
    """Apply every policy rule to a single string."""
    for pattern, replacement in SANITIZATION_POLICY:
        value = pattern.sub(replacement, value)
    return value


def sanitize(value: Any) -> Any:
    """
    Return a sanitized copy of an arbitrary nested structure.

    Mappings keep their keys and ordering, sequences keep their length and
    type (list or tuple). Non-string leaves are returned unchanged.
    """
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize(item) for item in value)
    return value


def media_type_of(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def is_json_media_type(media_type: str) -> bool:
    """`application/json` or any `application/*+json` subtype, as FastAPI parses them."""
    if media_type == JSON_MEDIA_TYPE:
        return True
    return media_type.startswith("application/") and media_type.endswith("+json")


def is_parsed_media_type(media_type: str) -> bool:
    """Media types whose bodies are parsed, sanitized and size-capped."""
    return is_json_media_type(media_type) or media_type == FORM_MEDIA_TYPE


def sanitize_urlencoded(raw: str) -> str:
    """Rewrite the values of an `a=1&b=2` string; keys are left alone."""
    pairs = parse_qsl(raw, keep_blank_values=True)
    return urlencode([(key, sanitize_string(value)) for key, value in pairs])


def sanitize_body(body: bytes, content_type: Optional[str]) -> bytes:
    """
    Sanitize a raw request body according to its media type.

    JSON (including `+json` subtypes) and URL-encoded bodies are parsed, sanitized and re-encoded. Bodies
    that do not parse are returned untouched so the endpoint reports the
    parse error itself. Every other media type passes through.
    """
    if not body:
        return body
    media_type = media_type_of(content_type)
    if is_json_media_type(media_type):
        try:
            data = json.loads(body)
        except ValueError:
            return body
        return json.dumps(sanitize(data)).encode("utf-8")
    if media_type == FORM_MEDIA_TYPE:
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            return body
        return sanitize_urlencoded(text).encode("utf-8")
    return body


def sanitize_scope(scope: dict) -> None:
    """Rewrite the query string and path parameters of an ASGI scope in place."""
    query_string = scope.get("query_string", b"")
    if query_string:
        scope["query_string"] = sanitize_urlencoded(query_string.decode("latin-1")).encode("latin-1")
    path_params = scope.get("path_params")
    if path_params:
        scope["path_params"] = sanitize(dict(path_params))


class SanitizedRequest(Request):
    """Request whose body() (and therefore json()/form()) yields sanitized data."""

    async def body(self) -> bytes:
        if not hasattr(self, "_sanitized"):
            raw = await super().body()
            self._body = sanitize_body(raw, self.headers.get("content-type"))
            self._sanitized = True
        return self._body


class SanitizedRoute(APIRoute):
    """
    FastAPI route class that sanitizes request input before the endpoint runs.

    Usage:
        router = APIRouter(route_class=SanitizedRoute)
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()

        async def sanitized_route_handler(request: Request) -> Response:
            sanitize_scope(request.scope)
            request = SanitizedRequest(request.scope, request.receive)
            if is_parsed_media_type(media_type_of(request.headers.get("content-type"))):
                # Prime the cache so form parsing, which streams, sees sanitized bytes.
                await request.body()
            return await original_route_handler(request)

        return sanitized_route_handler
