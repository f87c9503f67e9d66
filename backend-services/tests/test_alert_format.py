import pytest

from models.alert_models import AlertKind, IpInfo
from utils.alert_format_util import (
    BRICK,
    EMERALD,
    GREEN,
    ORANGE,
    RED,
    build_webhook_body,
    status_color,
)


def _fields(body):
    return {f['name']: f['value'] for f in body['embeds'][0]['fields']}


@pytest.mark.parametrize('status,color', [(200, GREEN), (302, GREEN), (401, ORANGE), (499, ORANGE), (500, RED), (503, RED)])
def test_activity_color_by_status(status, color):
    assert status_color(status) == color


def test_request_completed_embed_has_no_footer_and_truncates_user_agent():
    body = build_webhook_body(
        AlertKind.REQUEST_COMPLETED,
        {'method': 'GET', 'endpoint': '/api/search', 'status_code': 201, 'ip': '203.0.113.7',
         'duration_ms': 12, 'api_key_used': True, 'user_agent': 'A' * 600},
        'Tester',
    )
    embed = body['embeds'][0]
    assert 'footer' not in embed
    assert embed['title'] == 'GET /api/search'
    fields = _fields(body)
    assert fields['Duration'] == '`12 ms`'
    assert fields['API Key Used?'] == 'Yes'
    assert fields['User Agent'] == '```' + 'A' * 500 + '...```'


def test_request_completed_omits_negative_duration():
    body = build_webhook_body(AlertKind.REQUEST_COMPLETED, {'status_code': 200, 'duration_ms': -1}, 'Tester')
    assert 'Duration' not in _fields(body)


def test_internal_error_message_is_truncated():
    body = build_webhook_body(AlertKind.INTERNAL_ERROR, {'error_message': 'x' * 1500, 'endpoint': '/api/boom'}, 'Tester')
    embed = body['embeds'][0]
    assert embed['color'] == BRICK
    assert embed['footer']['text'] == 'API Service | Tester'
    assert _fields(body)['Error Message'] == '```\n' + 'x' * 1000 + '\n```'


def test_report_and_feature_defaults():
    report = build_webhook_body(AlertKind.REPORT_SUBMITTED, {'text': 'broken', 'ip': '1.2.3.4'}, 'Tester')
    feature = build_webhook_body(AlertKind.FEATURE_REQUESTED, {'text': 'idea', 'name': 'Sam'}, 'Tester')
    assert report['embeds'][0]['description'] == 'broken'
    assert _fields(report)['Reporter'] == '`Anonymous`'
    assert _fields(feature)['Reporter'] == '`Sam`'
    assert report['embeds'][0]['color'] != feature['embeds'][0]['color']


def test_blacklist_mutation_colors():
    added = build_webhook_body(AlertKind.BLACKLIST_MUTATED, {'action': 'added', 'ip': '1.2.3.4', 'admin_ip': '5.6.7.8', 'timestamp': 100}, 'T')
    removed = build_webhook_body(AlertKind.BLACKLIST_MUTATED, {'action': 'removed', 'ip': '1.2.3.4'}, 'T')
    assert added['embeds'][0]['color'] == RED
    assert removed['embeds'][0]['color'] == EMERALD
    assert _fields(added)['Action Time'] == '<t:100:R>'
    assert _fields(added)['Performed By Admin (IP)'] == '`5.6.7.8`'


def test_rate_limit_embed_without_ip_info():
    body = build_webhook_body(AlertKind.RATE_LIMIT_TRIPPED, {'ip': '1.2.3.4'}, 'T')
    fields = _fields(body)
    assert fields['ISP'] == 'N/A'
    assert fields['Endpoint Hit'] == '`/`'
    with_info = build_webhook_body(AlertKind.RATE_LIMIT_TRIPPED, {'ip_info': IpInfo(isp='X', city='C', country='K')}, 'T')
    assert _fields(with_info)['Location'] == 'C, K'
