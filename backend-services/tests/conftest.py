"""
Pytest configuration for backend-services tests.

Ensures the backend-services directory is on sys.path so imports like
`from utils...` resolve correctly when tests run from the repo root in CI.
"""

# External imports
import asyncio
import base64
import json
import os
import sys
import tempfile
from dataclasses import dataclass

# TEST-ONLY credentials - DO NOT use these in production
os.environ.setdefault('ADMIN_API_KEY', 'test-admin-key')
os.environ.setdefault('LOGS_DIR', os.path.join(tempfile.gettempdir(), 'turnstile-test-logs'))

_HERE = os.path.dirname(__file__)
_PROJECT_ROOT = os.path.abspath(os.path.join(_HERE, os.pardir))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

import httpx
import pytest
import pytest_asyncio
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from models.endpoint_models import EndpointDefinition, RouteEntry
from utils.config_util import GatewaySettings, SettingsDocument

ADMIN_KEY = 'test-admin-key'
API_KEYS = ('key-one', 'key-two')
BLACKLIST_URL = 'https://blacklist.test/blacklist.json'
GEO_URL = 'https://geo.test/json/{ip}'


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstreams:
    """MockTransport handler standing in for every outbound dependency:
    the blacklist document host, Discord webhooks, the geolocation provider
    and the GitHub contents API.
    """

    def __init__(self):
        self.blacklist: object = []
        self.blacklist_status = 200
        self.blacklist_calls = 0
        self.webhook_posts: list[tuple[str, dict]] = []
        self.webhook_status = 204
        self.webhook_gate: asyncio.Event | None = None
        self.geo_calls: list[str] = []
        self.geo_reply: dict = {
            'status': 'success', 'country': 'Netherlands', 'city': 'Amsterdam', 'isp': 'Example ISP', 'org': 'Example Org'
        }
        self.repo_exists = True
        self.repo_ips: list[str] = ['198.51.100.1']
        self.repo_sha = 'sha-1'
        self.repo_puts: list[dict] = []
        self.put_status: int | None = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == 'blacklist.test':
            self.blacklist_calls += 1
            return httpx.Response(self.blacklist_status, json=self.blacklist)
        if host == 'discord.test':
            if self.webhook_gate is not None:
                await self.webhook_gate.wait()
            self.webhook_posts.append((request.url.path, json.loads(request.content)))
            return httpx.Response(self.webhook_status)
        if host == 'geo.test':
            self.geo_calls.append(request.url.path)
            return httpx.Response(200, json=self.geo_reply)
        if host == 'api.github.com':
            return self._github(request)
        return httpx.Response(404)

    def _github(self, request: httpx.Request) -> httpx.Response:
        if request.method == 'GET':
            if not self.repo_exists:
                return httpx.Response(404, json={'message': 'Not Found'})
            content = base64.b64encode(json.dumps(self.repo_ips).encode()).decode()
            return httpx.Response(200, json={'sha': self.repo_sha, 'content': content})
        body = json.loads(request.content)
        self.repo_puts.append(body)
        if self.put_status is not None:
            return httpx.Response(self.put_status, json={'message': 'forced'})
        if self.repo_exists and body.get('sha') != self.repo_sha:
            return httpx.Response(409, json={'message': 'sha mismatch'})
        self.repo_ips = json.loads(base64.b64decode(body['content']))
        self.repo_exists = True
        self.repo_sha = f'sha-{len(self.repo_puts) + 1}'
        return httpx.Response(200, json={'commit': {'sha': f'commit-{len(self.repo_puts)}'}})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def posts_to(self, hook: str) -> list[dict]:
        return [body for path, body in self.webhook_posts if path == f'/webhooks/{hook}']


@dataclass
class GatewayHarness:
    client: AsyncClient
    app: object

    @property
    def gateway(self):
        return self.app.state.gateway


def make_settings(**overrides) -> GatewaySettings:
    values = {
        'deployment_mode': 'stateful',
        'admin_api_key': ADMIN_KEY,
        'github_blacklist_url': BLACKLIST_URL,
        'geo_lookup_url': GEO_URL,
        'rate_limit_per_minute': 30,
        'discord_webhook_ddos': 'https://discord.test/webhooks/ddos',
        'discord_webhook_error': 'https://discord.test/webhooks/error',
        'discord_webhook_report': 'https://discord.test/webhooks/report',
        'discord_webhook_feature': 'https://discord.test/webhooks/feature',
        'discord_webhook_blacklist': 'https://discord.test/webhooks/blacklist',
        'discord_webhook_activity': None,
        'github_username': 'owner',
        'github_repo': 'lists',
        'github_token': 'test-github-token',
        'pages_dir': os.path.join(_PROJECT_ROOT, 'api-page'),
    }
    values.update(overrides)
    return GatewaySettings(**values)


def make_document() -> SettingsDocument:
    return SettingsDocument(
        creator='Tester',
        api_keys=API_KEYS,
        endpoints=(
            EndpointDefinition.from_template('/api/search?q=&apikey=', 'Active', 'tools', 'Search'),
            EndpointDefinition.from_template('/api/public?q=', 'Beta', 'tools', 'Public'),
            EndpointDefinition.from_template('/api/boom', 'Active', 'tools', 'Boom'),
            EndpointDefinition.from_template('/api/legacy', 'Retired', 'tools', 'Legacy'),
        ),
    )


async def echo_handler(request: Request):
    return {'status': True, 'q': request.query_params.get('q'), 'apikey': request.query_params.get('apikey')}


async def boom_handler():
    raise RuntimeError('handler exploded')


def make_routes() -> list[RouteEntry]:
    return [
        RouteEntry('/api/search', echo_handler, requires_key=True),
        RouteEntry('/api/public', echo_handler),
        RouteEntry('/api/boom', boom_handler),
        RouteEntry('/api/legacy', echo_handler),
        RouteEntry('/api/unlisted', echo_handler),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstreams():
    return FakeUpstreams()


@pytest_asyncio.fixture
async def make_gateway(upstreams, clock):
    """Build an app over the fake upstreams and return a harness (httpx client + app).

    The gateway is started (initial blacklist fetch) before the client is
    handed out and stopped at teardown.
    """
    from turnstile import create_app

    created = []

    async def _make(routes=None, document=None, **overrides):
        http_client = upstreams.client()
        app = create_app(
            settings=make_settings(**overrides),
            document=document or make_document(),
            routes=make_routes() if routes is None else routes,
            http_client=http_client,
            clock=clock,
        )
        await app.state.gateway.start()
        client = AsyncClient(transport=ASGITransport(app=app), base_url='http://testserver')
        created.append((app, client, http_client))
        return GatewayHarness(client=client, app=app)

    yield _make

    for app, client, http_client in created:
        await client.aclose()
        await app.state.gateway.stop()
        await http_client.aclose()
