from __future__ import annotations

import logging
import time
from collections import deque
from threading import Lock

from fastapi import Depends, HTTPException, Request, status

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """In-process sliding window limiter keyed by "<scope>:<client ip>".

    Only meant for a single worker; state is lost on restart.
    """

    def __init__(self, *, max_keys: int = 10_000) -> None:
        self._max_keys = max_keys
        self._lock = Lock()
        self._hits: dict[str, deque[float]] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> int:
        """Record a hit; return 0 when allowed, otherwise seconds to wait."""
        now = time.monotonic()
        window_start = now - window_seconds

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= limit:
                return max(1, int(window_seconds - (now - hits[0])) + 1)

            hits.append(now)
            if len(self._hits) > self._max_keys:
                self._evict_idle(window_start)
            return 0

    def _evict_idle(self, window_start: float) -> None:
        idle = [k for k, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for k in idle:
            del self._hits[k]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = SlidingWindowLimiter()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return request.client.host if request.client else "unknown"


def rate_limit(scope: str, *, limit: int, window_seconds: int):
    """Dependency factory guarding guessable endpoints (login, access code, tokens)."""

    def _dep(request: Request) -> None:
        ip = _client_ip(request)
        retry_after = limiter.hit(f"{scope}:{ip}", limit=limit, window_seconds=window_seconds)
        if retry_after:
            logger.warning("Rate limit hit: scope=%s ip=%s", scope, ip)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(_dep)
