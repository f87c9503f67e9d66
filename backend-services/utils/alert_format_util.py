"""
Discord webhook payload builders, one per alert kind.
"""

import time
from datetime import datetime, timezone
from typing import Any

from models.alert_models import AlertKind, IpInfo

RED = 15158332
ORANGE = 16736336
BLUE = 3447003
BRICK = 13632027
GREEN = 4886754
EMERALD = 3066993

ERROR_MESSAGE_LIMIT = 1000
USER_AGENT_LIMIT = 500


def _code(value: Any, default: str = 'N/A') -> str:
    return f'`{value if value not in (None, "") else default}`'


def _field(name: str, value: str, inline: bool = True) -> dict:
    return {'name': name, 'value': value, 'inline': inline}


def status_color(status_code: int) -> int:
    if status_code >= 500:
        return RED
    if status_code >= 400:
        return ORANGE
    return GREEN


def truncate(text: str | None, limit: int, ellipsis: bool = False) -> str:
    text = text or ''
    if len(text) <= limit:
        return text
    return text[:limit] + ('...' if ellipsis else '')


def _rate_limit_tripped(payload: dict, embed: dict, body: dict) -> None:
    info: IpInfo | None = payload.get('ip_info')
    body['username'] = 'Turnstile Abuse Alert'
    body['content'] = '@here **Rate limit tripped**'
    embed['title'] = 'Security Alert: Abnormal Activity Detected'
    embed['color'] = RED
    embed['description'] = (
        'An IP exceeded the request quota and is temporarily throttled. '
        'Consider blacklisting it if the activity continues.'
    )
    embed['fields'] = [
        _field('IP Address', _code(payload.get('ip'))),
        _field('Endpoint Hit', _code(payload.get('endpoint'), '/')),
        _field('ISP', info.isp if info else 'N/A', inline=False),
        _field('Location', f'{info.city if info else "N/A"}, {info.country if info else "N/A"}'),
        _field('Organization', info.org if info else 'N/A'),
    ]


def _report(payload: dict, embed: dict, body: dict, feature: bool) -> None:
    if feature:
        body['username'] = 'Turnstile Feature Requests'
        embed['title'] = 'New Feature Request Submitted'
        embed['color'] = BLUE
    else:
        body['username'] = 'Turnstile Error Reports'
        embed['title'] = 'New Error Report Received'
        embed['color'] = ORANGE
    embed['description'] = payload.get('text') or 'No description provided.'
    embed['fields'] = [
        _field('Reporter', _code(payload.get('name'), 'Anonymous')),
        _field('Reporter IP', _code(payload.get('ip'))),
    ]


def _internal_error(payload: dict, embed: dict, body: dict) -> None:
    message = truncate(payload.get('error_message') or 'Unknown Server Error', ERROR_MESSAGE_LIMIT)
    body['username'] = 'Turnstile Error Log'
    embed['title'] = 'Internal Server Error (500)'
    embed['color'] = BRICK
    embed['description'] = 'The server failed while processing a request. Check the server log for details.'
    embed['fields'] = [
        _field('Client IP', _code(payload.get('ip'))),
        _field('Endpoint', _code(payload.get('endpoint'), '/')),
        _field('Error Message', f'```\n{message}\n```', inline=False),
    ]


def _request_completed(payload: dict, embed: dict, body: dict) -> None:
    status_code = int(payload.get('status_code') or 0)
    duration = payload.get('duration_ms')
    body['username'] = 'Turnstile Activity'
    embed['title'] = f'{payload.get("method", "GET")} {payload.get("endpoint", "/")}'
    embed['color'] = status_color(status_code)
    fields = [
        _field('IP Address', _code(payload.get('ip'))),
        _field('Status Code', _code(status_code)),
    ]
    if duration is not None and duration >= 0:
        fields.append(_field('Duration', f'`{int(duration)} ms`'))
    fields.append(_field('API Key Used?', 'Yes' if payload.get('api_key_used') else 'No'))
    user_agent = truncate(payload.get('user_agent') or 'N/A', USER_AGENT_LIMIT, ellipsis=True)
    fields.append(_field('User Agent', f'```{user_agent}```', inline=False))
    embed['fields'] = fields
    embed.pop('footer', None)


def _blacklist_mutated(payload: dict, embed: dict, body: dict) -> None:
    added = payload.get('action') == 'added'
    action_text = 'Added to Blacklist' if added else 'Removed from Blacklist'
    body['username'] = 'Turnstile Blacklist Log'
    embed['title'] = f'IP {action_text}'
    embed['color'] = RED if added else EMERALD
    embed['description'] = f'IP address `{payload.get("ip") or "N/A"}` was **{action_text.lower()}**.'
    embed['fields'] = [
        _field('Performed By Admin (IP)', _code(payload.get('admin_ip'))),
        _field('Action Time', f'<t:{int(payload.get("timestamp") or time.time())}:R>'),
    ]


def build_webhook_body(kind: AlertKind, payload: dict, creator: str) -> dict:
    """Build the JSON body for a Discord webhook POST."""
    embed: dict[str, Any] = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'footer': {'text': f'API Service | {creator}'},
    }
    body: dict[str, Any] = {'username': 'Turnstile', 'embeds': [embed]}
    if kind == AlertKind.RATE_LIMIT_TRIPPED:
        _rate_limit_tripped(payload, embed, body)
    elif kind == AlertKind.REPORT_SUBMITTED:
        _report(payload, embed, body, feature=False)
    elif kind == AlertKind.FEATURE_REQUESTED:
        _report(payload, embed, body, feature=True)
    elif kind == AlertKind.INTERNAL_ERROR:
        _internal_error(payload, embed, body)
    elif kind == AlertKind.REQUEST_COMPLETED:
        _request_completed(payload, embed, body)
    elif kind == AlertKind.BLACKLIST_MUTATED:
        _blacklist_mutated(payload, embed, body)
    else:
        raise ValueError(f'Unknown alert kind: {kind}')
    return body
