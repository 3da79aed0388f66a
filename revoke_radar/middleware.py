"""Request body size limit middleware.

Scan requests are small JSON objects (an address, a flag, a handful of custom
spenders). Anything larger than MAX_REQUEST_BODY_BYTES is rejected with 413
before a route handler reads it:

  1. Content-Length fast path: reject on the declared size without reading.
  2. No Content-Length (chunked): accumulate with a rolling cap; the bytes that
     were read are cached on the request for the handler.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from revoke_radar.constants import MAX_REQUEST_BODY_BYTES
from revoke_radar.utils.logger import get_logger

logger = get_logger(__name__)

_PAYLOAD_TOO_LARGE_BODY: dict = {
    "error": f"Request body too large. Maximum size: {MAX_REQUEST_BODY_BYTES // 1024}KB",
}

_INVALID_CONTENT_LENGTH_BODY: dict = {
    "error": "Invalid Content-Length header",
}


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects request bodies over MAX_REQUEST_BODY_BYTES with HTTP 413.

    Content-Length == limit is accepted; one byte over is not.
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "Invalid Content-Length header",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > MAX_REQUEST_BODY_BYTES:
                logger.warning(
                    "Request body too large (Content-Length)",
                    declared_size=declared_size,
                    limit=MAX_REQUEST_BODY_BYTES,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)

            return await call_next(request)

        if request.method in ("GET", "HEAD", "OPTIONS"):
            return await call_next(request)

        body_chunks: list[bytes] = []
        total_size = 0
        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > MAX_REQUEST_BODY_BYTES:
                logger.warning(
                    "Request body too large (chunked)",
                    accumulated_size=total_size,
                    limit=MAX_REQUEST_BODY_BYTES,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)
            body_chunks.append(chunk)

        # Request.body() returns the cached bytes instead of re-reading the stream.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]
        return await call_next(request)
