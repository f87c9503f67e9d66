"""
Per-stage path exemptions for the admission pipeline.

Each stage carries its own exemption predicate. Informational and admin paths
stay reachable for a blocked or throttled caller; static assets never consume
rate-limit quota and never need a key.
"""

import re
from dataclasses import dataclass, field

STATIC_ASSET_PATTERN = re.compile(
    r'\.(html|css|js|png|jpg|jpeg|gif|ico|svg|woff|woff2|ttf|eot|map|mp3|json|txt)$', re.IGNORECASE
)

ALWAYS_EXEMPT_PATHS = frozenset({
    '/',
    '/api/endpoint-status',
    '/api/submit-report',
    '/api/blacklist-info',
    '/api/my-ip',
    '/manage-blacklist',
})
ALWAYS_EXEMPT_PREFIXES = ('/admin/',)
MEDIA_PREFIXES = ('/images/', '/audio/')


def is_static_asset(path: str) -> bool:
    return path == '/favicon.ico' or bool(STATIC_ASSET_PATTERN.search(path or ''))


@dataclass(frozen=True)
class PathRule:
    paths: frozenset = frozenset()
    prefixes: tuple[str, ...] = ()
    static_assets: bool = False

    def matches(self, path: str) -> bool:
        if path in self.paths:
            return True
        if any(path.startswith(p) for p in self.prefixes):
            return True
        return self.static_assets and is_static_asset(path)


@dataclass(frozen=True)
class StageExemptions:
    blacklist: PathRule = field(
        default_factory=lambda: PathRule(ALWAYS_EXEMPT_PATHS, ALWAYS_EXEMPT_PREFIXES)
    )
    rate_limit: PathRule = field(
        default_factory=lambda: PathRule(ALWAYS_EXEMPT_PATHS, ALWAYS_EXEMPT_PREFIXES, static_assets=True)
    )
    key_check: PathRule = field(
        default_factory=lambda: PathRule(
            ALWAYS_EXEMPT_PATHS, ALWAYS_EXEMPT_PREFIXES + MEDIA_PREFIXES, static_assets=True
        )
    )

