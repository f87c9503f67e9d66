"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import httpx

from models.endpoint_models import RouteEntry
from services.admission_service import AdmissionPipeline
from services.alert_service import AlertDispatcher
from services.blacklist_admin_service import BlacklistAdminService, BlacklistRepository
from utils.blacklist_util import BlacklistCache, RemoteBlacklistSource, build_blacklist_strategy
from utils.config_util import GatewaySettings, SettingsDocument
from utils.endpoint_registry import EndpointRegistry
from utils.geo_lookup import GeoLookup
from utils.http_client import create_http_client
from utils.key_util import ApiKeyValidator
from utils.rate_limiter import InProcessBackend, RateLimiter, RedisBackend
from utils.redis_client import create_redis_client

logger = logging.getLogger('turnstile.gateway')


@dataclass
class GatewayState:
    """Everything a request needs, built once per application instance."""

    settings: GatewaySettings
    document: SettingsDocument
    registry: EndpointRegistry
    blacklist_cache: BlacklistCache
    blacklist: object
    rate_limiter: RateLimiter
    key_validator: ApiKeyValidator
    pipeline: AdmissionPipeline
    geo: GeoLookup
    alerts: AlertDispatcher
    http_client: httpx.AsyncClient
    admin: BlacklistAdminService | None = None
    owns_http_client: bool = True
    total_requests: int = 0

    @property
    def creator(self) -> str:
        return self.document.creator

    def count_request(self) -> int:
        self.total_requests += 1
        return self.total_requests

    async def start(self) -> None:
        await self.blacklist.start()
        logger.info(
            f'Gateway started: mode={self.settings.deployment_mode} '
            f'blacklist={self.blacklist.name} rate_limit={self.rate_limiter.backend.name} '
            f'endpoints={len(self.registry)}'
        )

    async def stop(self) -> None:
        for name, closer in (
            ('blacklist', self.blacklist.stop),
            ('alerts', self.alerts.close),
            ('rate limiter', self.rate_limiter.close),
        ):
            try:
                await closer()
            except Exception as e:
                logger.error(f'Error stopping {name}: {e}')
        if self.owns_http_client:
            await self.http_client.aclose()


def build_gateway_state(
    settings: GatewaySettings,
    document: SettingsDocument,
    routes: Iterable[RouteEntry] = (),
    http_client: httpx.AsyncClient | None = None,
    redis_client=None,
    clock: Callable[[], float] = time.time,
) -> GatewayState:
    owns_http_client = http_client is None
    client = http_client or create_http_client()

    registry = EndpointRegistry(document.endpoints)
    for entry in routes:
        # Settings-file definitions take precedence over handler registrations
        if registry.resolve(entry.path) is None:
            registry.register(entry.to_definition())

    cache = BlacklistCache(
        RemoteBlacklistSource(client, settings.github_blacklist_url, settings.blacklist_fetch_timeout)
    )
    blacklist = build_blacklist_strategy(
        settings.effective_blacklist_strategy, cache, settings.blacklist_refresh_seconds
    )

    if settings.effective_rate_limit_backend == 'redis':
        backend = RedisBackend(redis_client or create_redis_client(settings.redis_url))
    else:
        backend = InProcessBackend()
    rate_limiter = RateLimiter(
        backend,
        limit=settings.rate_limit_per_minute,
        window_seconds=settings.rate_limit_window_seconds,
        local_block_cache=isinstance(backend, RedisBackend),
        clock=clock,
    )

    key_validator = ApiKeyValidator(document.api_keys, inject_default=settings.inject_default_api_key)
    geo = GeoLookup(client, settings.geo_lookup_url, settings.geo_lookup_timeout)
    alerts = AlertDispatcher(
        client,
        settings.webhook_for,
        geo=geo,
        creator=document.creator,
        timeout=settings.alert_timeout,
        queue_size=settings.alert_queue_size,
    )

    admin = None
    if settings.repository_configured:
        admin = BlacklistAdminService(
            BlacklistRepository(
                client,
                settings.github_username,
                settings.github_repo,
                settings.github_token,
                file_path=settings.github_file_path,
                branch=settings.github_branch,
            )
        )
    else:
        logger.warning('GitHub repository settings incomplete; blacklist admin operations are disabled')

    return GatewayState(
        settings=settings,
        document=document,
        registry=registry,
        blacklist_cache=cache,
        blacklist=blacklist,
        rate_limiter=rate_limiter,
        key_validator=key_validator,
        pipeline=AdmissionPipeline(blacklist, rate_limiter, registry, key_validator),
        geo=geo,
        alerts=alerts,
        http_client=client,
        admin=admin,
        owns_http_client=owns_http_client,
    )
