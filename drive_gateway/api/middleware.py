"""
ASGI middleware for the upload size ceiling.

FastAPI parses the multipart body before the route handler runs, so the
handler can only check the size after everything was received. This
middleware rejects requests whose declared Content-Length is already over
the limit before a single byte of the body is read, and counts the body
as it arrives for requests that declare no length (chunked transfer), so
an oversized body is cut off instead of being spooled in full.
"""

import logging
from typing import Iterable

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.errors import PayloadTooLargeError

logger = logging.getLogger(__name__)

# room for multipart boundaries and the small form fields next to the file
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class UploadSizeLimitMiddleware:
    """Reject oversized uploads, declared or streamed."""

    def __init__(self, app: ASGIApp, max_upload_bytes: int, paths: Iterable[str]) -> None:
        self.app = app
        self.max_upload_bytes = max_upload_bytes
        self.paths = frozenset(paths)

    @property
    def body_limit(self) -> int:
        return self.max_upload_bytes + MULTIPART_OVERHEAD_BYTES

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] not in self.paths:
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length", "")
        if declared.isdigit() and int(declared) > self.body_limit:
            await self._reject(scope, receive, send, int(declared))
            return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.body_limit:
                    exceeded = True
                    raise PayloadTooLargeError(self._message())
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            # whatever the app answers after the cut-off is replaced by our 413
            if exceeded:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except PayloadTooLargeError:
            if not exceeded:
                raise

        if exceeded and not response_started:
            await self._reject(scope, receive, send, received)

    def _message(self) -> str:
        limit_mb = self.max_upload_bytes // (1024 * 1024)
        return f"File too large. Maximum size: {limit_mb}MB"

    async def _reject(self, scope: Scope, receive: Receive, send: Send, size: int) -> None:
        logger.warning(
            "Rejected oversized upload",
            extra={"path": scope["path"], "content_length": size}
        )
        response = JSONResponse(status_code=413, content={"error": self._message()})
        await response(scope, receive, send)
