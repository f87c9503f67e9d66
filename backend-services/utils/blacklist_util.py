"""
Blacklist source, cache and refresh strategies.

The effective blacklist is a frozenset replaced wholesale on every successful
refresh. A failed refresh (network, timeout, non-2xx, malformed document)
keeps whatever set was there before, which is the empty set at startup.
"""

import asyncio
import logging

import httpx

logger = logging.getLogger('turnstile.gateway')

EMPTY_BLACKLIST: frozenset = frozenset()

_NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


class RemoteBlacklistSource:
    """Fetches a JSON array of IP strings from a remote document."""

    def __init__(self, client: httpx.AsyncClient, url: str | None, timeout: float = 10.0):
        self.client = client
        self.url = url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def fetch(self) -> frozenset | None:
        """Return the fetched set, or None when nothing usable came back."""
        if not self.url:
            return None
        try:
            response = await self.client.get(self.url, headers=_NO_CACHE_HEADERS, timeout=self.timeout)
        except httpx.TimeoutException:
            logger.error(f'Blacklist fetch timed out after {self.timeout}s')
            return None
        except httpx.HTTPError as e:
            logger.error(f'Blacklist fetch failed: {e}')
            return None
        if not response.is_success:
            logger.error(f'Blacklist fetch returned HTTP {response.status_code}')
            return None
        try:
            data = response.json()
        except ValueError:
            logger.error('Blacklist document is not valid JSON')
            return None
        if not isinstance(data, list):
            logger.error(f'Blacklist document must be a JSON array, got {type(data).__name__}')
            return None
        return frozenset(ip.strip() for ip in data if isinstance(ip, str) and ip.strip())


class BlacklistCache:
    """Holds the most recent successfully fetched blacklist."""

    def __init__(self, source: RemoteBlacklistSource):
        self.source = source
        self._blocked: frozenset = EMPTY_BLACKLIST
        self._warned_unconfigured = False
        self._inflight: asyncio.Future | None = None

    @property
    def current(self) -> frozenset:
        return self._blocked

    def is_blocked(self, ip: str | None) -> bool:
        return bool(ip) and ip in self._blocked

    def replace(self, blocked: frozenset) -> bool:
        """Swap in a new set; return True when membership changed."""
        previous = self._blocked
        changed = len(previous) != len(blocked) or previous != blocked
        self._blocked = frozenset(blocked)
        if changed:
            logger.info(f'Blacklist changed: {len(previous)} -> {len(blocked)} IP(s)')
        return changed

    async def refresh(self) -> frozenset:
        if not self.source.configured:
            if not self._warned_unconfigured:
                logger.warning('GITHUB_BLACKLIST_URL is not configured; blacklist stays empty')
                self._warned_unconfigured = True
            return self._blocked
        # Concurrent callers share the fetch already in flight
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch_and_replace())
        return await asyncio.shield(self._inflight)

    async def _fetch_and_replace(self) -> frozenset:
        try:
            fetched = await self.source.fetch()
            if fetched is not None:
                self.replace(fetched)
            return self._blocked
        finally:
            self._inflight = None


class CachedPollBlacklist:
    """Refresh at startup, then on a background timer. Lookups are memoized."""

    name = 'poll'

    def __init__(self, cache: BlacklistCache, interval_seconds: float = 900):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        await self.cache.refresh()
        if self._task is None:
            self._task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.cache.refresh()
            except Exception as e:
                logger.error(f'Blacklist poll refresh failed: {e}')

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def is_blocked(self, ip: str | None) -> bool:
        return self.cache.is_blocked(ip)

    async def refresh(self) -> frozenset:
        return await self.cache.refresh()


class FetchPerRequestBlacklist:
    """Refresh before every lookup. Fresher data at the cost of a remote call."""

    name = 'per_request'

    def __init__(self, cache: BlacklistCache):
        self.cache = cache

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def is_blocked(self, ip: str | None) -> bool:
        await self.cache.refresh()
        return self.cache.is_blocked(ip)

    async def refresh(self) -> frozenset:
        return await self.cache.refresh()


def build_blacklist_strategy(strategy: str, cache: BlacklistCache, interval_seconds: float):
    if strategy == 'per_request':
        return FetchPerRequestBlacklist(cache)
    return CachedPollBlacklist(cache, interval_seconds)
