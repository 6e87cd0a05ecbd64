# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""In-memory rate limiting for auth endpoints (brute-force protection)."""

import time
from collections import defaultdict, deque

from fastapi import Request

from flowplay_server.errors import RateLimited

# Window seconds; max requests per window per endpoint
WINDOW = 60
LIMITS: dict[str, int] = {
    "/api/auth/login": 10,
    "/api/auth/register": 5,
}


def _client_key(request: Request) -> str:
    """Prefer X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


class RateLimiter:
    """Sliding-window counter per (client, path), owned by the application."""

    def __init__(self, limits: dict[str, int] | None = None, window: float = WINDOW):
        self.limits = LIMITS if limits is None else limits
        self.window = window
        # (client_key, path) -> request timestamps in window
        self._buckets: defaultdict[tuple[str, str], deque[float]] = defaultdict(deque)

    def check(self, request: Request, path: str) -> None:
        """Raise RateLimited if the client has exceeded the limit for this path."""
        limit = self.limits.get(path)
        if limit is None:
            return
        now = time.monotonic()
        bucket = self._buckets[(_client_key(request), path)]
        cutoff = now - self.window
        while bucket and bucket[0] < cutoff:
            bucket.popleft()
        if len(bucket) >= limit:
            raise RateLimited()
        bucket.append(now)


async def rate_limit_auth_dep(request: Request) -> None:
    """FastAPI dependency: rate limit auth endpoints. Add Depends(rate_limit_auth_dep) to routes."""
    if not request.app.state.settings.rate_limit_enabled:
        return
    request.app.state.rate_limiter.check(request, request.url.path.rstrip("/"))
