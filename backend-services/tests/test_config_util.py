import json

import pytest

from utils.config_util import (
    GatewaySettings,
    load_settings,
    load_settings_document,
    parse_settings_document,
)
from utils.error_util import ConfigurationError

from conftest import make_document, make_settings


def test_mode_defaults():
    stateful = GatewaySettings(admin_api_key='k')
    assert stateful.effective_blacklist_strategy == 'poll'
    assert stateful.effective_rate_limit_backend == 'memory'
    stateless = GatewaySettings(admin_api_key='k', deployment_mode='stateless')
    assert stateless.effective_blacklist_strategy == 'per_request'
    assert stateless.effective_rate_limit_backend == 'redis'
    mixed = GatewaySettings(admin_api_key='k', deployment_mode='stateless', blacklist_strategy='POLL')
    assert mixed.effective_blacklist_strategy == 'poll'


@pytest.mark.parametrize('overrides,message', [
    ({'admin_api_key': ''}, 'ADMIN_API_KEY'),
    ({'deployment_mode': 'serverless'}, 'DEPLOYMENT_MODE'),
    ({'deployment_mode': 'stateless', 'redis_url': None}, 'REDIS_URL'),
    ({'blacklist_strategy': 'sometimes'}, 'BLACKLIST_STRATEGY'),
    ({'rate_limit_backend': 'memcached'}, 'RATE_LIMIT_BACKEND'),
    ({'rate_limit_per_minute': 0}, 'RATE_LIMIT_PER_MINUTE'),
])
def test_invalid_settings_fail_fast(overrides, message):
    with pytest.raises(ConfigurationError, match=message):
        load_settings(**overrides)


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv('ADMIN_API_KEY', 'from-env')
    monkeypatch.setenv('RATE_LIMIT_PER_MINUTE', '12')
    monkeypatch.setenv('TRUST_PROXY', 'false')
    settings = load_settings()
    assert settings.admin_api_key == 'from-env'
    assert settings.rate_limit_per_minute == 12
    assert settings.trust_proxy is False


def test_webhook_for_treats_empty_as_unconfigured():
    settings = make_settings(discord_webhook_report='')
    from models.alert_models import AlertKind
    assert settings.webhook_for(AlertKind.REPORT_SUBMITTED) is None
    assert settings.webhook_for(AlertKind.RATE_LIMIT_TRIPPED) == 'https://discord.test/webhooks/ddos'


def test_settings_document_parsing():
    doc = parse_settings_document({
        'creator': 'Ops Team',
        'apikey': ['alpha', '', 7, 'beta'],
        'endpoints': {
            'search': [
                {'path': '/api/find?q=&apikey=', 'status': 'Maintenance', 'name': 'Find'},
                {'path': '/api/open', 'status': 'maintenance'},
                {'status': 'Active'},
            ],
            'broken': 'not-a-list',
        },
    })
    assert doc.creator == 'Ops Team'
    assert doc.api_keys == ('alpha', 'beta')
    assert [(e.path, e.requires_key, e.status.value) for e in doc.endpoints] == [
        ('/api/find', True, 'Maintenance'),
        ('/api/open', False, 'Active'),
    ]
    assert doc.endpoints[0].category == 'search'


def test_settings_document_defaults():
    doc = parse_settings_document({})
    assert doc.creator == 'Turnstile'
    assert doc.api_keys == ()
    assert parse_settings_document({'apikey': 'solo'}).api_keys == ('solo',)


@pytest.mark.parametrize('raw', [[], 'text', {'apikey': {'a': 1}}, {'endpoints': ['x']}])
def test_settings_document_rejects_wrong_shapes(raw):
    with pytest.raises(ConfigurationError):
        parse_settings_document(raw)


def test_settings_file_missing_or_malformed(tmp_path):
    with pytest.raises(ConfigurationError, match='not found'):
        load_settings_document(str(tmp_path / 'absent.json'))
    bad = tmp_path / 'settings.json'
    bad.write_text('{"apikey": [')
    with pytest.raises(ConfigurationError, match='could not be read'):
        load_settings_document(str(bad))
    good = tmp_path / 'ok.json'
    good.write_text(json.dumps({'apikey': ['k'], 'endpoints': {'x': [{'path': '/api/x'}]}}))
    assert load_settings_document(str(good)).api_keys == ('k',)


def test_create_app_refuses_bad_configuration(tmp_path):
    from turnstile import create_app

    with pytest.raises(ConfigurationError):
        create_app(settings=make_settings(admin_api_key=None), document=make_document())
    with pytest.raises(ConfigurationError):
        create_app(settings=make_settings(settings_file=str(tmp_path / 'missing.json')))
