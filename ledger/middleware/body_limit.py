"""
Digital Ledger Backend: Request Body Size Limit
================================================

What:  Rejects oversized JSON and URL-encoded bodies before any other stage.
How:   A declared Content-Length is checked without touching the body. When
       there is none (chunked uploads), the body is streamed here and the
       bytes are counted as they arrive; the read stops as soon as the count
       passes the cap. The buffered body is then handed to the downstream
       stages unchanged. Other media types (multipart uploads, binary) are
       not capped by this middleware.

Rejections:
    Content-Length above the cap → PayloadTooLargeError (413)
    Streamed bytes above the cap → PayloadTooLargeError (413)
    Content-Length not a number  → BadRequestError (400)
"""

import logging
from typing import List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ledger.exceptions import BadRequestError, PayloadTooLargeError
from ledger.security.sanitizer import is_parsed_media_type, media_type_of

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    def _reject(self, request: Request, media_type: str, length: int) -> PayloadTooLargeError:
        logger.warning(
            "Rejected %s body of %d bytes on %s (limit %d)",
            media_type,
            length,
            request.url.path,
            self.max_bytes,
        )
        return PayloadTooLargeError(limit=self.max_bytes, length=length)

    async def _read_body_with_limit(self, request: Request, media_type: str) -> bytes:
        chunks: List[bytes] = []
        total = 0
        async for chunk in request.stream():
            if not chunk:
                continue
            total += len(chunk)
            if total > self.max_bytes:
                raise self._reject(request, media_type, total)
            chunks.append(chunk)
        return b"".join(chunks)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        media_type = media_type_of(request.headers.get("content-type"))
        if not is_parsed_media_type(media_type):
            return await call_next(request)

        raw_length = request.headers.get("content-length")
        if raw_length is not None:
            try:
                length = int(raw_length)
            except ValueError:
                raise BadRequestError("Invalid Content-Length header", context={"content_length": raw_length})

            if length > self.max_bytes:
                raise self._reject(request, media_type, length)
            return await call_next(request)

        # No declared length: buffer under the cap. A request whose body()
        # was read in dispatch replays the cached bytes to the app.
        request._body = await self._read_body_with_limit(request, media_type)
        return await call_next(request)
