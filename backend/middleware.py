"""
Request guards: per-client rate limiting and a request body ceiling.

Rate limiting is a fixed window per client IP kept in process memory, the
same model as express-rate-limit's default store. With several workers each
one counts separately.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from errors import error_body

EXEMPT_PATHS = ("/api/health",)


def client_key(request: Request, trust_forwarded: bool = False) -> str:
    """Client IP; X-Forwarded-For is only honoured behind a trusted proxy."""
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Allow `max_requests` per client per `window_seconds`."""

    def __init__(
        self,
        app,
        max_requests: int,
        window_seconds: float,
        trust_forwarded: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.trust_forwarded = trust_forwarded
        self._clock = clock
        # client -> (window start, hits)
        self._windows: dict[str, tuple[float, int]] = {}

    def _hit(self, key: str) -> tuple[int, float]:
        now = self._clock()
        start, hits = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, hits = now, 0
            self._prune(now)
        hits += 1
        self._windows[key] = (start, hits)
        return hits, start + self.window_seconds

    def _prune(self, now: float) -> None:
        stale = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for k in stale:
            del self._windows[k]

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        hits, reset_at = self._hit(client_key(request, self.trust_forwarded))
        headers = {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(max(0, self.max_requests - hits)),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

        if hits > self.max_requests:
            headers["Retry-After"] = str(max(1, int(reset_at - self._clock())))
            return JSONResponse(
                error_body(
                    "Too many requests",
                    "Too many requests from this IP, please try again later.",
                ),
                status_code=429,
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


class BodySizeLimitMiddleware:
    """Reject request bodies larger than `max_bytes` with 413.

    The declared Content-Length is checked up front; chunked bodies are
    counted as they arrive. Once the ceiling is passed the 413 is sent, the
    app sees a client disconnect and anything it sends afterwards is dropped.
    Plain ASGI so it can wrap `receive`.
    """

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            error_body("Payload too large", f"Request body exceeds {self.max_bytes} bytes"),
            status_code=413,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None:
            try:
                too_large = int(length) > self.max_bytes
            except ValueError:
                response = JSONResponse(error_body("Invalid input", "Invalid Content-Length header"), status_code=400)
                await response(scope, receive, send)
                return
            if too_large:
                await self._too_large()(scope, receive, send)
                return

        received = 0
        started = False
        rejected = False

        async def limited_receive() -> Message:
            nonlocal received, rejected
            if rejected:
                return {"type": "http.disconnect"}
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes and not started:
                    rejected = True
                    await self._too_large()(scope, receive, send)
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal started
            if rejected:
                return
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except ClientDisconnect:
            if not rejected:
                raise
