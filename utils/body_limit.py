import logging

from starlette.exceptions import HTTPException
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from utils.metrics import incr

logger = logging.getLogger("api.body_limit")

TOO_LARGE_MESSAGE = "Request body too large"


class BodySizeLimitMiddleware:
    """Caps the total request body size.

    A declared Content-Length above the cap is answered with 413 before the
    application runs. Bodies without a usable Content-Length are counted as
    they are received and rejected once the running total crosses the cap.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = int(max_body_bytes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            logger.warning(
                "request_body_rejected declared_bytes=%s max_body_bytes=%s path=%s",
                declared,
                self.max_body_bytes,
                scope.get("path"),
            )
            incr("api_body_limit_rejected_total", reason="content_length")
            response = PlainTextResponse(TOO_LARGE_MESSAGE, status_code=413)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    logger.warning(
                        "request_body_rejected streamed_bytes=%s max_body_bytes=%s path=%s",
                        received,
                        self.max_body_bytes,
                        scope.get("path"),
                    )
                    incr("api_body_limit_rejected_total", reason="streamed")
                    raise HTTPException(status_code=413, detail=TOO_LARGE_MESSAGE)
            return message

        await self.app(scope, limited_receive, send)


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers") or []:
        if name == b"content-length":
            try:
                return int(value.decode("latin-1").strip())
            except ValueError:
                return None
    return None
