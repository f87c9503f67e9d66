import httpx
import pytest

from utils.geo_lookup import GeoLookup
from utils.http_client import CircuitManager


def _geo(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, GeoLookup(client, 'https://geo.test/json/{ip}', timeout=0.5, **kwargs)


@pytest.mark.asyncio
@pytest.mark.parametrize('ip', ['10.0.0.5', '192.168.1.1', '172.20.0.1', '127.0.0.1', '::1', '::ffff:10.1.2.3', '', None])
async def test_private_addresses_short_circuit(ip):
    def handler(req):
        raise AssertionError('no network call expected')

    client, geo = _geo(handler)
    async with client:
        info = await geo.get_ip_info(ip)
        assert info.isp == 'Local/Internal'
        assert info.country == 'N/A'


@pytest.mark.asyncio
async def test_mapped_ipv6_is_unwrapped_before_lookup():
    seen = []

    def handler(req):
        seen.append(req.url.path)
        return httpx.Response(200, json={'status': 'success', 'country': 'Japan', 'city': 'Tokyo', 'isp': 'ISP', 'org': 'Org'})

    client, geo = _geo(handler)
    async with client:
        info = await geo.get_ip_info('::ffff:203.0.113.9')
    assert seen == ['/json/203.0.113.9']
    assert (info.isp, info.country, info.city, info.org) == ('ISP', 'Japan', 'Tokyo', 'Org')


@pytest.mark.asyncio
async def test_provider_failure_timeout_and_error_placeholders():
    def fail(req):
        return httpx.Response(200, json={'status': 'fail', 'message': 'reserved range'})

    def timeout(req):
        raise httpx.ConnectTimeout('slow', request=req)

    def error(req):
        raise httpx.ConnectError('refused', request=req)

    replies = {'fail': fail, 'timeout': timeout, 'error': error}
    expected = {'fail': 'Lookup Failed', 'timeout': 'Lookup Timeout', 'error': 'Lookup Error'}
    for name, handler in replies.items():
        client, geo = _geo(handler)
        async with client:
            info = await geo.get_ip_info('203.0.113.9')
        assert info.isp == expected[name]
        assert info.city == 'N/A'


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    calls = {'n': 0}

    def handler(req):
        calls['n'] += 1
        raise httpx.ConnectError('refused', request=req)

    client, geo = _geo(handler, breaker=CircuitManager(), breaker_threshold=2, breaker_open_seconds=60)
    async with client:
        assert (await geo.get_ip_info('203.0.113.9')).isp == 'Lookup Error'
        assert (await geo.get_ip_info('203.0.113.9')).isp == 'Lookup Error'
        assert (await geo.get_ip_info('203.0.113.9')).isp == 'Lookup Failed'
    assert calls['n'] == 2
