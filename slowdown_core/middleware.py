"""
Slowdown Middleware
===================
ASGI middleware that delays responses for callers hitting the service
too often, instead of rejecting them.

Usage:
    from slowdown_core.middleware import SlowDownMiddleware

    app.add_middleware(
        SlowDownMiddleware,
        delay_after=10,
        delay_ms=250,
        max_delay_ms=5000,
        skip_failed_requests=True,
    )

The decision for each request is available to handlers as
``request.state.slow_down``. Requests bypassed by ``skip`` get none.
Hooks such as ``key_generator`` may read the body; the app still
receives it.
"""

import asyncio
from collections import deque
from typing import Deque, Optional, Set
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send
import structlog

from .config import DEFAULT_EXCLUDED_PATHS
from .engine.models import Decision
from .engine.slow_down import SlowDown
from .exceptions import StoreError

logger = structlog.get_logger(__name__)


class _WatchedReceive:
    """
    Wraps ``receive`` so a disconnect can be noticed while a request is
    held back, without losing body messages meant for the app.
    """

    def __init__(self, receive: Receive):
        self._receive = receive
        self._buffer: Deque[Message] = deque()
        self.disconnected = asyncio.Event()

    async def replay(self) -> Message:
        """Receive for hooks: messages read here are kept for the app."""
        message = await self._receive()
        self._buffer.append(message)
        if message["type"] == "http.disconnect":
            self.disconnected.set()
        return message

    async def watch(self):
        """Read ahead until the client disconnects or the watch is cancelled."""
        while True:
            message = await self._receive()
            self._buffer.append(message)
            if message["type"] == "http.disconnect":
                self.disconnected.set()
                return

    async def __call__(self) -> Message:
        if self._buffer:
            return self._buffer.popleft()
        return await self._receive()


class SlowDownMiddleware:
    """
    Middleware that slows down callers instead of rejecting them.

    Every request counts against its caller's key. Past ``delay_after``
    hits in a window each request waits progressively longer before the
    app sees it. Callers that disconnect while held back are dropped
    without reaching the app.
    """

    def __init__(
        self,
        app: ASGIApp,
        slow_down: Optional[SlowDown] = None,
        excluded_paths: Optional[Set[str]] = None,
        **options,
    ):
        self.app = app
        self.slow_down = slow_down or SlowDown(**options)
        self.excluded_paths = (
            excluded_paths if excluded_paths is not None else DEFAULT_EXCLUDED_PATHS
        )

    async def reset_key(self, key: str) -> None:
        await self.slow_down.reset_key(key)

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or scope["path"] in self.excluded_paths:
            await self.app(scope, receive, send)
            return

        watched = _WatchedReceive(receive)
        request = Request(scope, watched.replay)

        try:
            decision = await self.slow_down.evaluate(request)
        except StoreError as e:
            logger.error(
                "slowdown_unavailable",
                path=scope["path"],
                operation=e.operation,
                error=e.message,
            )
            response = self._unavailable_response()
            await response(scope, receive, send)
            return

        if not decision.skipped:
            scope.setdefault("state", {})["slow_down"] = decision

        if decision.delayed and not await self._hold(decision, watched):
            return

        await self._dispatch(scope, watched, send, decision)

    async def _hold(self, decision: Decision, watched: _WatchedReceive) -> bool:
        """Wait out the delay. Returns False if the client went away."""
        watch = asyncio.ensure_future(watched.watch())
        try:
            proceed = await self.slow_down.wait(decision, watched.disconnected)
        finally:
            watch.cancel()

        if not proceed and decision.tracker is not None:
            await decision.tracker.closed()
        return proceed

    async def _dispatch(self, scope: Scope, receive: Receive, send: Send, decision: Decision):
        """Run the app and report how the response ended."""
        tracker = decision.tracker
        if tracker is None:
            await self.app(scope, receive, send)
            return

        status_code = 500
        finished = False

        async def send_wrapper(message: Message):
            nonlocal status_code, finished
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                finished = True

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            # A response already delivered keeps its status
            if finished:
                await tracker.finished(status_code)
            else:
                await tracker.errored(exc)
            raise
        finally:
            if finished:
                await tracker.finished(status_code)
            else:
                await tracker.closed()

    def _unavailable_response(self) -> JSONResponse:
        """Return response when the counter store cannot be reached."""
        return JSONResponse(
            status_code=503,
            content={
                "error": "service_unavailable",
                "message": "Request throttling is temporarily unavailable.",
                "code": "SLOWDOWN_STORE_UNAVAILABLE",
            }
        )
