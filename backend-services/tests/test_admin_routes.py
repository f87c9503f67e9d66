import base64
import json

import httpx
import pytest

from conftest import ADMIN_KEY

AUTH = {'X-Admin-Key': ADMIN_KEY}


@pytest.mark.asyncio
@pytest.mark.parametrize('headers', [{}, {'X-Admin-Key': 'wrong'}, {'X-Admin-Key': ''}])
async def test_admin_key_required(make_gateway, headers):
    harness = await make_gateway()
    r = await harness.client.get('/admin/blacklist', headers=headers)
    assert r.status_code == 403
    assert r.json()['error_code'] == 'ADM001'


@pytest.mark.asyncio
async def test_list_returns_persisted_ips(make_gateway, upstreams):
    upstreams.repo_ips = ['198.51.100.1', '203.0.113.9']
    harness = await make_gateway()
    r = await harness.client.get('/admin/blacklist', headers=AUTH)
    assert r.status_code == 200
    assert r.json() == {'status': True, 'count': 2, 'data': ['198.51.100.1', '203.0.113.9']}


@pytest.mark.asyncio
async def test_add_writes_with_sha_refreshes_and_alerts(make_gateway, upstreams):
    harness = await make_gateway()
    calls_before = upstreams.blacklist_calls
    r = await harness.client.post('/admin/blacklist', json={'ip': ' 203.0.113.7 '}, headers=AUTH)
    assert r.status_code == 200
    assert r.json() == {'status': True, 'message': 'IP 203.0.113.7 added to the blacklist'}
    assert r.headers['X-Request-ID']

    put = upstreams.repo_puts[0]
    assert put['sha'] == 'sha-1'
    assert json.loads(base64.b64decode(put['content'])) == ['198.51.100.1', '203.0.113.7']
    assert upstreams.blacklist_calls == calls_before + 1

    await harness.gateway.alerts.drain()
    embed = upstreams.posts_to('blacklist')[0]['embeds'][0]
    assert embed['title'] == 'IP Added to Blacklist'
    assert {f['name']: f['value'] for f in embed['fields']}['Performed By Admin (IP)'] == '`127.0.0.1`'


@pytest.mark.asyncio
async def test_remove_ip(make_gateway, upstreams):
    harness = await make_gateway()
    r = await harness.client.delete('/admin/blacklist/198.51.100.1', headers=AUTH)
    assert r.status_code == 200
    assert upstreams.repo_ips == []
    await harness.gateway.alerts.drain()
    assert upstreams.posts_to('blacklist')[0]['embeds'][0]['title'] == 'IP Removed from Blacklist'


@pytest.mark.asyncio
async def test_duplicate_add_and_missing_remove(make_gateway, upstreams):
    harness = await make_gateway()
    dup = await harness.client.post('/admin/blacklist', json={'ip': '198.51.100.1'}, headers=AUTH)
    assert dup.status_code == 409
    assert dup.json()['error_code'] == 'ADM004'
    missing = await harness.client.delete('/admin/blacklist/192.0.2.44', headers=AUTH)
    assert missing.status_code == 404
    assert missing.json()['error_code'] == 'ADM003'
    assert upstreams.repo_puts == []


@pytest.mark.asyncio
async def test_invalid_ip_rejected(make_gateway, upstreams):
    harness = await make_gateway()
    r = await harness.client.post('/admin/blacklist', json={'ip': 'not-an-ip'}, headers=AUTH)
    assert r.status_code == 400
    assert r.json()['error_code'] == 'ADM002'
    body = await harness.client.post('/admin/blacklist', json={}, headers=AUTH)
    assert body.status_code == 422
    assert body.json()['error_code'] == 'VAL001'
    assert upstreams.repo_puts == []


@pytest.mark.asyncio
async def test_concurrent_update_surfaces_retryable_conflict(make_gateway, upstreams):
    upstreams.put_status = 409
    harness = await make_gateway()
    r = await harness.client.post('/admin/blacklist', json={'ip': '203.0.113.7'}, headers=AUTH)
    assert r.status_code == 409
    assert r.json() == {
        'status': False,
        'error_code': 'ADM409',
        'error_message': 'Blacklist update conflict, retry the operation',
        'retryable': True,
    }
    await harness.gateway.alerts.drain()
    assert upstreams.posts_to('blacklist') == []


@pytest.mark.asyncio
async def test_repository_auth_failure_is_bad_gateway(make_gateway, upstreams):
    upstreams.put_status = 401
    harness = await make_gateway()
    r = await harness.client.post('/admin/blacklist', json={'ip': '203.0.113.7'}, headers=AUTH)
    assert r.status_code == 502
    assert r.json()['error_code'] == 'ADM502'
    assert 'retryable' not in r.json()


@pytest.mark.asyncio
async def test_missing_file_is_created_without_sha(make_gateway, upstreams):
    upstreams.repo_exists = False
    harness = await make_gateway()
    listed = await harness.client.get('/admin/blacklist', headers=AUTH)
    assert listed.json()['data'] == []
    r = await harness.client.post('/admin/blacklist', json={'ip': '2001:db8::1'}, headers=AUTH)
    assert r.status_code == 200
    assert 'sha' not in upstreams.repo_puts[0]
    assert upstreams.repo_ips == ['2001:db8::1']


@pytest.mark.asyncio
async def test_unconfigured_repository(make_gateway):
    harness = await make_gateway(github_token=None)
    assert harness.gateway.admin is None
    r = await harness.client.post('/admin/blacklist', json={'ip': '203.0.113.7'}, headers=AUTH)
    assert r.status_code == 500
    assert r.json()['error_code'] == 'ADM500'
    listed = await harness.client.get('/admin/blacklist', headers=AUTH)
    assert listed.status_code == 500


@pytest.mark.asyncio
async def test_repository_timeout_is_retryable(make_gateway, upstreams):
    def slow(request):
        raise httpx.ReadTimeout('github slow', request=request)

    harness = await make_gateway()
    harness.gateway.admin.repository.client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
    try:
        r = await harness.client.get('/admin/blacklist', headers=AUTH)
    finally:
        await harness.gateway.admin.repository.client.aclose()
    assert r.status_code == 504
    assert r.json()['retryable'] is True


@pytest.mark.asyncio
async def test_long_repository_error_is_clipped(make_gateway):
    def unreachable(request):
        raise httpx.ConnectError('connection refused ' + 'x' * 400, request=request)

    harness = await make_gateway()
    harness.gateway.admin.repository.client = httpx.AsyncClient(transport=httpx.MockTransport(unreachable))
    try:
        r = await harness.client.post('/admin/blacklist', json={'ip': '203.0.113.7'}, headers=AUTH)
    finally:
        await harness.gateway.admin.repository.client.aclose()
    assert r.status_code == 502
    assert r.json()['error_code'] == 'ADM502'
    assert r.json()['error_message'].endswith('...')
    assert len(r.json()['error_message']) == 255


def test_request_models_publish_examples_without_deprecation_warnings():
    import warnings

    from models.report_model import BlacklistEntryModel, ReportModel

    with warnings.catch_warnings():
        warnings.simplefilter('error')
        report_schema = ReportModel.model_json_schema()
        entry_schema = BlacklistEntryModel.model_json_schema()
    assert report_schema['properties']['report_type']['examples'] == ['error']
    assert entry_schema['properties']['ip']['examples'] == ['203.0.113.7']
