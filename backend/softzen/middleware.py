from __future__ import annotations
import asyncio

import structlog
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger(__name__)


class RequestTimeoutMiddleware:
    """
    Answer 408 when a request runs longer than ``timeout`` seconds.

    The handler is not cancelled: it keeps running in the background and
    whatever it sends afterwards is dropped. If the handler already started
    its response when the deadline passes, the response is left to finish.
    """

    def __init__(self, app: ASGIApp, timeout: float = 30.0):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.timeout:
            await self.app(scope, receive, send)
            return

        timed_out = False
        started = False

        async def guarded_send(message: Message) -> None:
            nonlocal started
            if timed_out:
                return
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        task = asyncio.ensure_future(self.app(scope, receive, guarded_send))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if task in done:
            task.result()
            return
        if started:
            await task
            return

        timed_out = True
        task.add_done_callback(_log_late_failure)
        logger.warning("request_timeout", path=scope.get("path"), method=scope.get("method"), timeout=self.timeout)
        response = JSONResponse({"error": "Request timeout", "type": "timeout_error"}, status_code=408)
        await response(scope, receive, send)


def _log_late_failure(task: "asyncio.Future[None]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("late_request_failed", error=str(exc))
