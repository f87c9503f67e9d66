"""
Rate Limiting Data Models

Fixed-window counter record and the result returned to the admission
pipeline, including the response headers advertised to clients.
"""

import math
from dataclasses import dataclass


@dataclass
class RateLimitRecord:
    """Counter for one client key within the current window"""

    key: str
    count: int
    reset_at_ms: int

    def expired(self, now_ms: int) -> bool:
        return now_ms >= self.reset_at_ms


@dataclass
class RateLimitResult:
    """Result of rate limit check"""

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after: int | None = None
    window_seconds: int = 60

    @property
    def reset_at(self) -> int:
        """Reset time in epoch seconds"""
        return int(math.ceil(self.reset_at_ms / 1000))

    def seconds_until_reset(self, now_ms: int) -> int:
        return max(0, int(math.ceil((self.reset_at_ms - now_ms) / 1000)))

    def to_headers(self, now_ms: int) -> dict[str, str]:
        """X-RateLimit-* plus the IETF draft-7 RateLimit/RateLimit-Policy pair."""
        reset_in = self.seconds_until_reset(now_ms)
        headers = {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(max(0, self.remaining)),
            'X-RateLimit-Reset': str(self.reset_at),
            'RateLimit-Policy': f'{self.limit};w={self.window_seconds}',
            'RateLimit': f'limit={self.limit}, remaining={max(0, self.remaining)}, reset={reset_in}',
        }
        if not self.allowed:
            headers['Retry-After'] = str(self.retry_after if self.retry_after is not None else reset_in)
        return headers
