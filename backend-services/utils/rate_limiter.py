"""
Rate Limiter

Fixed-window request counter keyed by client IP. Two interchangeable
backends: an in-process dict for single long-running servers and Redis for
stateless deployments where every invocation may land on a fresh process.
Backend failures admit the request (fail-open).
"""

import logging
import math
import time
from collections.abc import Callable

from models.rate_limit_models import RateLimitRecord, RateLimitResult

logger = logging.getLogger('turnstile.gateway')

_SWEEP_THRESHOLD = 10000


class InProcessBackend:
    """Process-local counters. Not shared between workers."""

    name = 'memory'

    def __init__(self):
        self._records: dict[str, RateLimitRecord] = {}

    async def hit(self, key: str, window_ms: int, now_ms: int) -> RateLimitRecord:
        record = self._records.get(key)
        if record is None or record.expired(now_ms):
            if len(self._records) >= _SWEEP_THRESHOLD:
                self._sweep(now_ms)
            record = RateLimitRecord(key=key, count=0, reset_at_ms=now_ms + window_ms)
            self._records[key] = record
        record.count += 1
        return RateLimitRecord(key=record.key, count=record.count, reset_at_ms=record.reset_at_ms)

    def _sweep(self, now_ms: int) -> None:
        for k in [k for k, r in self._records.items() if r.expired(now_ms)]:
            self._records.pop(k, None)

    async def close(self) -> None:
        self._records.clear()


class RedisBackend:
    """Shared counters in Redis (``redis.asyncio`` client)."""

    name = 'redis'

    def __init__(self, client, prefix: str = 'turnstile:rl:'):
        self.client = client
        self.prefix = prefix

    async def hit(self, key: str, window_ms: int, now_ms: int) -> RateLimitRecord:
        redis_key = f'{self.prefix}{key}'
        count = int(await self.client.incr(redis_key))
        if count == 1:
            await self.client.pexpire(redis_key, window_ms)
            ttl_ms = window_ms
        else:
            ttl_ms = await self.client.pttl(redis_key)
            # Key without expiry (e.g. process died between INCR and PEXPIRE)
            if ttl_ms is None or int(ttl_ms) < 0:
                await self.client.pexpire(redis_key, window_ms)
                ttl_ms = window_ms
        return RateLimitRecord(key=key, count=count, reset_at_ms=now_ms + int(ttl_ms))

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except AttributeError:
            await self.client.close()


class RateLimiter:
    """
    Per-IP fixed window rate limiter

    Features:
    - N requests per window per key, the (N+1)th is rejected
    - Pluggable backend (in-process or Redis)
    - Optional local memo of already-rejected keys to skip backend round-trips
    - Graceful degradation: backend errors admit the request
    """

    def __init__(
        self,
        backend,
        limit: int = 30,
        window_seconds: int = 60,
        local_block_cache: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self.local_block_cache = local_block_cache
        self._clock = clock
        self._blocked: dict[str, int] = {}

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _rejected(self, reset_at_ms: int, now_ms: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self.limit,
            remaining=0,
            reset_at_ms=reset_at_ms,
            retry_after=max(1, int(math.ceil((reset_at_ms - now_ms) / 1000))),
            window_seconds=self.window_seconds,
        )

    async def check(self, client_key: str | None, now_ms: int | None = None) -> RateLimitResult:
        """Count one request for ``client_key`` and decide whether to admit it."""
        now_ms = self.now_ms() if now_ms is None else now_ms
        key = client_key or 'unknown'
        window_ms = self.window_seconds * 1000

        if self.local_block_cache:
            blocked_until = self._blocked.get(key)
            if blocked_until is not None:
                if now_ms < blocked_until:
                    return self._rejected(blocked_until, now_ms)
                self._blocked.pop(key, None)

        try:
            record = await self.backend.hit(key, window_ms, now_ms)
        except Exception as e:
            logger.error(f'Rate limit check error: {e}')
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit,
                reset_at_ms=now_ms + window_ms,
                window_seconds=self.window_seconds,
            )

        if record.count > self.limit:
            if self.local_block_cache:
                self._blocked[key] = record.reset_at_ms
            return self._rejected(record.reset_at_ms, now_ms)

        return RateLimitResult(
            allowed=True,
            limit=self.limit,
            remaining=max(0, self.limit - record.count),
            reset_at_ms=record.reset_at_ms,
            window_seconds=self.window_seconds,
        )

    async def close(self) -> None:
        try:
            await self.backend.close()
        except Exception as e:
            logger.warning(f'Rate limit backend close failed: {e}')
