from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

import redis


class RateLimiterBackend(Protocol):
    def incr_with_ttl(self, key: str, ttl_seconds: int) -> int: ...

    def get_count(self, key: str) -> int: ...

    def reset(self, key: str) -> None: ...


class InMemoryRateLimiterBackend:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        # key -> (count, expires_at_epoch)
        self._store: dict[str, tuple[int, float]] = {}
        self._clock = clock

    def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        count, exp = self._store.get(key, (0, 0.0))
        if exp <= now:
            # window expired or does not exist; reset
            count = 0
            exp = now + ttl_seconds
        count += 1
        self._store[key] = (count, exp)
        return count

    def get_count(self, key: str) -> int:
        count, exp = self._store.get(key, (0, 0.0))
        if exp <= self._clock():
            self._store.pop(key, None)
            return 0
        return count

    def reset(self, key: str) -> None:
        self._store.pop(key, None)


class RedisRateLimiterBackend:
    def __init__(self, redis_url: str | None = None, *, client: object = None) -> None:
        self._r = client if client is not None else redis.from_url(redis_url)

    def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        # Use INCR and set EXPIRE on first increment within the window
        pipe = self._r.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        cnt, ttl = pipe.execute()
        # If key had no TTL (new key or persisted), set it now
        if ttl is None or ttl < 0:
            self._r.expire(key, ttl_seconds)
        return int(cnt)

    def get_count(self, key: str) -> int:
        raw = self._r.get(key)
        return int(raw) if raw else 0

    def reset(self, key: str) -> None:
        self._r.delete(key)


class LoginAttemptLimiter:
    """Throttle failed chatbot password attempts per phone number.

    The window starts at the first failure; once ``max_attempts`` failures are
    recorded the phone is blocked until the window expires. A successful login
    clears the counter.
    """

    def __init__(
        self, backend: RateLimiterBackend, *, max_attempts: int = 5, window_seconds: int = 900
    ) -> None:
        self._backend = backend
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    @staticmethod
    def _key(phone_number: str) -> str:
        return f"rl:login:{phone_number}"

    def is_blocked(self, phone_number: str) -> bool:
        return self._backend.get_count(self._key(phone_number)) >= self.max_attempts

    def record_failure(self, phone_number: str) -> int:
        """Count a failed attempt and return how many attempts remain."""
        count = self._backend.incr_with_ttl(self._key(phone_number), self.window_seconds)
        return max(self.max_attempts - count, 0)

    def reset(self, phone_number: str) -> None:
        self._backend.reset(self._key(phone_number))
