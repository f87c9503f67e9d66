"""
Geographic IP Lookup

Best-effort ISP/location lookup used to enrich abuse alerts. Never raises:
private addresses short-circuit, provider failures degrade to placeholders.
"""

import logging

import httpx

from models.alert_models import (
    LOCAL_IP_INFO,
    LOOKUP_ERROR,
    LOOKUP_FAILED,
    LOOKUP_TIMEOUT,
    IpInfo,
)
from utils.http_client import CircuitManager, CircuitOpenError
from utils.ip_policy_util import is_private, unwrap_mapped

logger = logging.getLogger('turnstile.gateway')

_BREAKER_KEY = 'geo-lookup'


class GeoLookup:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url_template: str = 'https://ip-api.com/json/{ip}?fields=status,message,country,city,isp,org',
        timeout: float = 3.5,
        breaker: CircuitManager | None = None,
        breaker_threshold: int = 5,
        breaker_open_seconds: float = 30.0,
    ):
        self.client = client
        self.url_template = url_template
        self.timeout = timeout
        self.breaker = breaker or CircuitManager()
        self.breaker_threshold = breaker_threshold
        self.breaker_open_seconds = breaker_open_seconds

    async def get_ip_info(self, ip: str | None) -> IpInfo:
        if not ip or is_private(ip):
            return LOCAL_IP_INFO
        clean_ip = unwrap_mapped(ip)
        try:
            self.breaker.check(_BREAKER_KEY, self.breaker_open_seconds)
        except CircuitOpenError:
            logger.warning(f'IP lookup skipped for {clean_ip}: provider circuit open')
            return LOOKUP_FAILED

        try:
            response = await self.client.get(self.url_template.format(ip=clean_ip), timeout=self.timeout)
            data = response.json()
        except httpx.TimeoutException:
            self.breaker.record_failure(_BREAKER_KEY, self.breaker_threshold)
            logger.warning(f'IP lookup timed out for {clean_ip}')
            return LOOKUP_TIMEOUT
        except (httpx.HTTPError, ValueError) as e:
            self.breaker.record_failure(_BREAKER_KEY, self.breaker_threshold)
            logger.error(f'IP lookup error for {clean_ip}: {e}')
            return LOOKUP_ERROR

        self.breaker.record_success(_BREAKER_KEY)
        if not isinstance(data, dict) or not (data.get('status') == 'success' or data.get('country')):
            message = data.get('message') if isinstance(data, dict) else None
            logger.warning(f'IP lookup failed for {clean_ip}: {message or "status is not success"}')
            return LOOKUP_FAILED
        return IpInfo(
            isp=data.get('isp') or 'N/A',
            country=data.get('country') or 'N/A',
            city=data.get('city') or 'N/A',
            org=data.get('org') or 'N/A',
        )
