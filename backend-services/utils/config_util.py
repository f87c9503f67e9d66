"""
Gateway configuration.

Environment-driven settings (``GatewaySettings``) plus the endpoint/API-key
settings file. Anything malformed here raises ConfigurationError so the
application factory refuses to start.
"""

import json
import logging
import os
from dataclasses import dataclass, field

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from models.alert_models import AlertKind
from models.endpoint_models import EndpointDefinition
from utils.error_util import ConfigurationError

logger = logging.getLogger('turnstile.gateway')

DEFAULT_CREATOR = 'Turnstile'
STATEFUL = 'stateful'
STATELESS = 'stateless'


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore', case_sensitive=False)

    deployment_mode: str = STATEFUL
    blacklist_strategy: str | None = None
    rate_limit_backend: str | None = None

    settings_file: str = 'settings.json'
    admin_api_key: str | None = None

    github_blacklist_url: str | None = None
    blacklist_refresh_seconds: float = 900
    blacklist_fetch_timeout: float = 10

    rate_limit_per_minute: int = 30
    rate_limit_window_seconds: int = 60
    redis_url: str | None = None
    trust_proxy: bool = True
    inject_default_api_key: bool = True

    geo_lookup_url: str = 'https://ip-api.com/json/{ip}?fields=status,message,country,city,isp,org'
    geo_lookup_timeout: float = 3.5

    discord_webhook_report: str | None = None
    discord_webhook_feature: str | None = None
    discord_webhook_ddos: str | None = None
    discord_webhook_error: str | None = None
    discord_webhook_activity: str | None = None
    discord_webhook_blacklist: str | None = None
    alert_timeout: float = 8
    alert_queue_size: int = 1000

    github_username: str | None = None
    github_repo: str | None = None
    github_token: str | None = None
    github_file_path: str = 'blacklist.json'
    github_branch: str | None = None

    pages_dir: str = 'api-page'
    static_dir: str | None = None

    host: str = '0.0.0.0'
    port: int = 8000

    @property
    def stateful(self) -> bool:
        return self.deployment_mode == STATEFUL

    @property
    def effective_blacklist_strategy(self) -> str:
        if self.blacklist_strategy:
            return self.blacklist_strategy.lower()
        return 'poll' if self.stateful else 'per_request'

    @property
    def effective_rate_limit_backend(self) -> str:
        if self.rate_limit_backend:
            return self.rate_limit_backend.lower()
        return 'memory' if self.stateful else 'redis'

    @property
    def repository_configured(self) -> bool:
        return bool(self.github_username and self.github_repo and self.github_token)

    def webhook_for(self, kind: AlertKind) -> str | None:
        return {
            AlertKind.RATE_LIMIT_TRIPPED: self.discord_webhook_ddos,
            AlertKind.REPORT_SUBMITTED: self.discord_webhook_report,
            AlertKind.FEATURE_REQUESTED: self.discord_webhook_feature,
            AlertKind.INTERNAL_ERROR: self.discord_webhook_error,
            AlertKind.REQUEST_COMPLETED: self.discord_webhook_activity,
            AlertKind.BLACKLIST_MUTATED: self.discord_webhook_blacklist,
        }.get(kind) or None

    def validate_startup(self) -> None:
        if self.deployment_mode not in (STATEFUL, STATELESS):
            raise ConfigurationError(
                f'DEPLOYMENT_MODE must be "{STATEFUL}" or "{STATELESS}", got "{self.deployment_mode}"'
            )
        if not self.admin_api_key:
            raise ConfigurationError('ADMIN_API_KEY is not configured. Set it before starting the server.')
        if self.effective_blacklist_strategy not in ('poll', 'per_request'):
            raise ConfigurationError('BLACKLIST_STRATEGY must be "poll" or "per_request"')
        if self.effective_rate_limit_backend not in ('memory', 'redis'):
            raise ConfigurationError('RATE_LIMIT_BACKEND must be "memory" or "redis"')
        if self.effective_rate_limit_backend == 'redis' and not self.redis_url:
            raise ConfigurationError('RATE_LIMIT_BACKEND=redis requires REDIS_URL')
        if self.rate_limit_per_minute < 1 or self.rate_limit_window_seconds < 1:
            raise ConfigurationError('RATE_LIMIT_PER_MINUTE and RATE_LIMIT_WINDOW_SECONDS must be positive')


def load_settings(**overrides) -> GatewaySettings:
    try:
        settings = GatewaySettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f'Invalid gateway configuration: {e}') from e
    settings.validate_startup()
    return settings


@dataclass(frozen=True)
class SettingsDocument:
    """Parsed contents of the settings file"""

    creator: str = DEFAULT_CREATOR
    api_keys: tuple[str, ...] = ()
    endpoints: tuple[EndpointDefinition, ...] = field(default_factory=tuple)


def parse_settings_document(raw: object) -> SettingsDocument:
    if not isinstance(raw, dict):
        raise ConfigurationError('Settings file must contain a JSON object')

    keys = raw.get('apikey') or []
    if isinstance(keys, str):
        keys = [keys]
    if not isinstance(keys, list):
        raise ConfigurationError('"apikey" must be a list of strings')
    api_keys = tuple(k for k in keys if isinstance(k, str) and k)

    endpoints: list[EndpointDefinition] = []
    categories = raw.get('endpoints') or {}
    if not isinstance(categories, dict):
        raise ConfigurationError('"endpoints" must map category names to lists')
    for category, items in categories.items():
        if not isinstance(items, list):
            logger.warning(f'Settings: endpoint category "{category}" is not a list, skipped')
            continue
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get('path'), str) or not item['path']:
                logger.warning(f'Settings: invalid endpoint entry in "{category}" skipped: {item!r}')
                continue
            endpoints.append(
                EndpointDefinition.from_template(
                    item['path'], status=item.get('status'), category=category, name=item.get('name')
                )
            )

    creator = raw.get('creator')
    return SettingsDocument(
        creator=creator if isinstance(creator, str) and creator else DEFAULT_CREATOR,
        api_keys=api_keys,
        endpoints=tuple(endpoints),
    )


def load_settings_document(path: str) -> SettingsDocument:
    """Read and parse the settings file. Missing or malformed is fatal."""
    if not os.path.isfile(path):
        raise ConfigurationError(f'Settings file not found: {path}')
    try:
        with open(path, encoding='utf-8') as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f'Settings file {path} could not be read: {e}') from e
    document = parse_settings_document(raw)
    logger.info(
        f'Settings loaded from {path}: {len(document.endpoints)} endpoint(s), {len(document.api_keys)} API key(s)'
    )
    return document
