"""Fixed-window rate limiting for credential operations."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Protocol

from fastapi import Request, Response

from app.core.config import settings
from app.core.exceptions import RateLimitExceeded

PRUNE_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining_attempts: int
    reset_time: float


class CounterStore(Protocol):
    def increment(self, identifier: str, *, window_seconds: int, now: float) -> tuple[int, float]:
        """Atomically count one attempt and return ``(count, window_reset_at)``.

        Starts a fresh window (count 1) when none exists or the old one has elapsed.
        """
        ...

    def reset(self, identifier: str | None = None) -> None:
        ...


class InMemoryCounterStore:
    """Process-local counters; fine for a single instance."""

    def __init__(self) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def increment(self, identifier: str, *, window_seconds: int, now: float) -> tuple[int, float]:
        with self._lock:
            entry = self._counters.get(identifier)
            if entry is None or now > entry[1]:
                if len(self._counters) >= PRUNE_THRESHOLD:
                    self._prune(now)
                entry = (1, now + window_seconds)
            else:
                entry = (entry[0] + 1, entry[1])
            self._counters[identifier] = entry
            return entry

    def reset(self, identifier: str | None = None) -> None:
        with self._lock:
            if identifier is None:
                self._counters.clear()
            else:
                self._counters.pop(identifier, None)

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._counters.items() if now > reset_at]
        for key in expired:
            del self._counters[key]


class FixedWindowRateLimiter:
    def __init__(self, store: CounterStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> CounterStore:
        return self._store

    def check(self, identifier: str, max_attempts: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        count, reset_at = self._store.increment(identifier, window_seconds=window_seconds, now=now)
        if count > max_attempts:
            return RateLimitResult(allowed=False, remaining_attempts=0, reset_time=reset_at)
        return RateLimitResult(allowed=True, remaining_attempts=max_attempts - count, reset_time=reset_at)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    for header in ("x-real-ip", "cf-connecting-ip", "x-client-ip"):
        value = (request.headers.get(header) or "").strip()
        if value:
            return value
    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(request: Request, response: Response, operation: str, subject: str) -> RateLimitResult | None:
    """Count one attempt for ``operation:subject`` and raise once the window budget is spent."""
    if not settings.RATE_LIMIT_ENABLED:
        return None
    max_attempts, window_seconds = settings.rate_limit_for(operation)
    limiter = get_rate_limiter(request)
    result = limiter.check(f"{operation}:{subject}", max_attempts, window_seconds)
    response.headers["X-RateLimit-Limit"] = str(max_attempts)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining_attempts)
    if not result.allowed:
        retry_after = max(int(result.reset_time - time.time()), 1)
        raise RateLimitExceeded(
            retry_after=retry_after,
            limit=max_attempts,
            window_seconds=window_seconds,
            reset_at=result.reset_time,
        )
    return result


def rate_limit(operation: str):
    def _dependency(request: Request, response: Response) -> None:
        enforce_rate_limit(request, response, operation, client_ip(request))

    return _dependency
