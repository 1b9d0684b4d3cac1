import time
from collections import defaultdict, deque
from typing import Deque, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


class SlidingWindowLimiter(BaseHTTPMiddleware):
    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.window_seconds = 60
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.exclude_paths = set(exclude_paths or [])
        self.store: Dict[str, Deque[float]] = defaultdict(deque)

    def _key(self, request: Request) -> str:
        auth = request.headers.get("authorization")
        if auth:
            return f"token:{auth[-24:]}"
        client = request.client.host if request.client else "unknown"
        return f"ip:{client}"

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.exclude_paths or self.limit_per_minute <= 0:
            return await call_next(request)
        now = time.time()
        key = self._key(request)
        base = self.limit_per_minute
        if path.startswith("/auth/") or path.startswith("/public/"):
            base = min(base, 30)
        elif request.headers.get("authorization"):
            base *= self.auth_boost

        dq = self.store[key]
        while dq and now - dq[0] > self.window_seconds:
            dq.popleft()
        if len(dq) >= base:
            retry_after = max(1, int(self.window_seconds - (now - dq[0])))
            return JSONResponse(
                status_code=429,
                content={"error": {"code": "rate_limited", "message": "Too many requests", "details": {"retry_after": retry_after}}},
                headers={"Retry-After": str(retry_after)},
            )
        dq.append(now)
        return await call_next(request)
