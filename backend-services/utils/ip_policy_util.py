from __future__ import annotations

import ipaddress
import re

from starlette.requests import Request

_FORWARD_HEADERS = (
    'x-forwarded-for',
    'x-real-ip',
    'cf-connecting-ip',
)

_INTERNAL_NETWORKS = tuple(
    ipaddress.ip_network(n)
    for n in ('10.0.0.0/8', '172.16.0.0/12', '192.168.0.0/16', '127.0.0.0/8', '169.254.0.0/16', '::1/128', 'fc00::/7', 'fe80::/10')
)

_PRIVATE_PREFIX = re.compile(
    r'^(::f{4}:)?(10\.|192\.168\.|172\.(1[6-9]|2[0-9]|3[0-1])\.|127\.|localhost|::1)', re.IGNORECASE
)


def get_client_ip(request: Request, trust_proxy: bool) -> str | None:
    """Determine client IP with optional proxy trust.

    When `trust_proxy` is True the leftmost X-Forwarded-For entry (or X-Real-IP /
    CF-Connecting-IP) wins over the socket peer address.
    """
    try:
        src_ip = request.client.host if request.client else None
        if isinstance(src_ip, str) and src_ip in ('testserver', 'localhost'):
            src_ip = '127.0.0.1'
        if trust_proxy:
            for header in _FORWARD_HEADERS:
                val = request.headers.get(header)
                if val:
                    ip = val.split(',')[0].strip()
                    if ip:
                        return ip
        return src_ip
    except Exception:
        return request.client.host if request.client else None


def unwrap_mapped(ip: str) -> str:
    """Strip the IPv4-mapped IPv6 prefix (``::ffff:1.2.3.4`` -> ``1.2.3.4``)."""
    if ip and ip.lower().startswith('::ffff:'):
        return ip[7:]
    return ip


def is_private(ip: str | None) -> bool:
    if not ip:
        return True
    if _PRIVATE_PREFIX.match(ip):
        return True
    try:
        addr = ipaddress.ip_address(unwrap_mapped(ip))
        return any(addr in net for net in _INTERNAL_NETWORKS if net.version == addr.version)
    except ValueError:
        return False


def is_valid_ip(ip: str | None) -> bool:
    try:
        ipaddress.ip_address((ip or '').strip())
        return True
    except ValueError:
        return False


def mask_ip(ip: str) -> str:
    """Obscure an address for public listing.

    IPv4 keeps three octets (``1.2.3.xxx``); IPv6 keeps the first three groups.
    """
    if not isinstance(ip, str):
        return 'Invalid IP Format'
    if ':' in ip:
        parts = ip.split(':')
        if len(parts) > 3:
            return ':'.join(parts[:3]) + ':xxxx:...'
        return ip
    parts = ip.split('.')
    if len(parts) == 4:
        return '.'.join(parts[:3]) + '.xxx'
    return ip
