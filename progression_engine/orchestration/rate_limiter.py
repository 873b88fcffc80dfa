# ABOUTME: Fixed-window rate limiter keyed by actor and campaign, with in-memory and Redis backends.
# ABOUTME: The Redis backend shares windows across server instances via an atomic Lua script.

import threading
import time
from collections.abc import Callable
from typing import Protocol

from loguru import logger
from redis import Redis

from progression_engine.models.rate_limit import RateLimitDecision, RateLimitWindow


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def build_key(actor_id: str, campaign_id: str, scope: str | None = None) -> str:
    """
    Build a rate limit key for one actor in one campaign.

    Args:
        actor_id: Opaque actor identity (e.g. user id)
        campaign_id: Campaign identifier
        scope: Optional operation name so different limits don't share a window

    Returns:
        Key like "narration:user-1:camp-9"
    """
    key = f"{actor_id}:{campaign_id}"
    return f"{scope}:{key}" if scope else key


def _validate_limits(max_requests: int, window_ms: int) -> None:
    if max_requests < 1:
        raise ValueError(f"max_requests must be at least 1, got {max_requests}")
    if window_ms < 1:
        raise ValueError(f"window_ms must be at least 1, got {window_ms}")


class RateLimiter(Protocol):
    """Admission control interface shared by all backends"""

    def check_and_consume(self, key: str, max_requests: int, window_ms: int) -> RateLimitDecision: ...


class InMemoryRateLimiter:
    """
    Process-local fixed-window limiter.

    Only correct for a single server instance; use RedisRateLimiter when more
    than one process admits requests for the same campaign.
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        purge_interval_ms: int = 10 * 60 * 1000,
        purge_grace_ms: int = 60 * 1000
    ):
        """
        Initialize limiter.

        Args:
            clock: Returns the current time in epoch milliseconds
            purge_interval_ms: Minimum time between opportunistic purges
            purge_grace_ms: How long past reset_time a window must be to be purged
        """
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self.purge_interval_ms = purge_interval_ms
        self.purge_grace_ms = purge_grace_ms
        self._last_purge = clock()

    def __len__(self) -> int:
        return len(self._windows)

    def check_and_consume(self, key: str, max_requests: int, window_ms: int) -> RateLimitDecision:
        """
        Count one request against key and decide whether it is admitted.

        Args:
            key: Rate limit key (see build_key)
            max_requests: Admissions allowed per window
            window_ms: Window length in milliseconds

        Returns:
            RateLimitDecision with allowed flag, remaining admissions and reset time

        Raises:
            ValueError: If max_requests or window_ms is below 1
        """
        _validate_limits(max_requests, window_ms)

        with self._lock:
            now = self._clock()

            if now - self._last_purge >= self.purge_interval_ms:
                self._purge_locked(now)

            window = self._windows.get(key)

            if window is None or window.is_expired(now):
                window = RateLimitWindow(
                    key=key,
                    count=1,
                    window_start=now,
                    reset_time=now + window_ms,
                )
                self._windows[key] = window
                return RateLimitDecision(
                    allowed=True,
                    remaining=max_requests - 1,
                    reset_time=window.reset_time,
                )

            window.count += 1

            if window.count <= max_requests:
                return RateLimitDecision(
                    allowed=True,
                    remaining=max_requests - window.count,
                    reset_time=window.reset_time,
                )

            logger.bind(key=key, count=window.count, max_requests=max_requests).warning(
                f"Rate limit exceeded for {key}"
            )
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                reset_time=window.reset_time,
            )

    def purge_stale(self) -> int:
        """
        Remove windows well past their reset time.

        Returns:
            Number of windows removed
        """
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: int) -> int:
        stale = [
            key for key, window in self._windows.items()
            if now >= window.reset_time + self.purge_grace_ms
        ]
        for key in stale:
            del self._windows[key]

        self._last_purge = now
        if stale:
            logger.debug(f"Purged {len(stale)} stale rate limit windows")
        return len(stale)


# Atomically count the request and (on first hit) start the window.
# Returns {count, remaining ttl in ms}.
_CHECK_AND_CONSUME_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


class RedisRateLimiter:
    """
    Fixed-window limiter shared through Redis.

    Each window is one counter key that expires at reset_time, so stale
    windows are purged by Redis itself.
    """

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = "ratelimit",
        clock: Callable[[], int] = now_ms
    ):
        """
        Initialize limiter.

        Args:
            redis_client: Redis connection shared by all instances
            key_prefix: Namespace for counter keys
            clock: Returns the current time in epoch milliseconds
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._clock = clock
        self._script = redis_client.register_script(_CHECK_AND_CONSUME_SCRIPT)

    def check_and_consume(self, key: str, max_requests: int, window_ms: int) -> RateLimitDecision:
        """
        Count one request against key in Redis and decide admission.

        Raises:
            ValueError: If max_requests or window_ms is below 1
            redis.RedisError: If Redis is unreachable
        """
        _validate_limits(max_requests, window_ms)

        redis_key = f"{self.key_prefix}:{key}"
        count, ttl = self._script(keys=[redis_key], args=[window_ms])
        count, ttl = int(count), int(ttl)
        reset_time = self._clock() + ttl

        if count <= max_requests:
            return RateLimitDecision(
                allowed=True,
                remaining=max_requests - count,
                reset_time=reset_time,
            )

        logger.bind(key=key, count=count, max_requests=max_requests).warning(
            f"Rate limit exceeded for {key}"
        )
        return RateLimitDecision(allowed=False, remaining=0, reset_time=reset_time)


def create_rate_limiter(
    backend: str = "memory",
    redis_client: Redis | None = None,
    purge_interval_ms: int = 10 * 60 * 1000,
    purge_grace_ms: int = 60 * 1000
) -> RateLimiter:
    """
    Build the configured limiter backend.

    Raises:
        ValueError: If backend is unknown or redis is requested without a client
    """
    if backend == "memory":
        return InMemoryRateLimiter(
            purge_interval_ms=purge_interval_ms,
            purge_grace_ms=purge_grace_ms,
        )
    if backend == "redis":
        if redis_client is None:
            raise ValueError("Redis rate limiter requires a redis_client")
        return RedisRateLimiter(redis_client)
    raise ValueError(f"Unknown rate limit backend: '{backend}'")
