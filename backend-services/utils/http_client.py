"""
Outbound HTTP plumbing: the shared httpx AsyncClient factory and a small
per-provider circuit breaker.

Usage:
    breaker.check('geo-lookup', open_seconds)
    try:
        resp = await client.get(url, timeout=3.5)
        breaker.record_success('geo-lookup')
    except httpx.HTTPError:
        breaker.record_failure('geo-lookup', threshold)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    pass


@dataclass
class _BreakerState:
    failures: int = 0
    opened_at: float = 0.0
    state: str = CLOSED


class CircuitManager:
    """Consecutive-failure breaker keyed by provider name.

    After ``threshold`` failures the circuit opens and ``check`` raises until
    ``open_seconds`` have passed; the next call is a single half-open trial.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._states: dict[str, _BreakerState] = {}

    def get(self, key: str) -> _BreakerState:
        return self._states.setdefault(key, _BreakerState())

    def check(self, key: str, open_seconds: float) -> None:
        st = self.get(key)
        if st.state != OPEN:
            return
        if self._clock() - st.opened_at < open_seconds:
            raise CircuitOpenError(f'Circuit open for {key}')
        st.state = HALF_OPEN
        st.failures = 0

    def record_success(self, key: str) -> None:
        self._states[key] = _BreakerState()

    def record_failure(self, key: str, threshold: int) -> None:
        st = self.get(key)
        st.failures += 1
        if st.state == HALF_OPEN or st.failures >= max(1, threshold):
            st.state = OPEN
            st.opened_at = self._clock()

    def reset(self) -> None:
        self._states.clear()


def create_http_client(timeout: float = 10.0, user_agent: str = 'turnstile-gateway') -> httpx.AsyncClient:
    """One pooled client per application; per-call timeouts override the default."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={'User-Agent': user_agent},
        follow_redirects=True,
    )
