"""
Admission Middleware

ASGI-level middleware running the admission pipeline before routing.
Rejections are answered here; admitted requests get rate-limit headers and,
for public endpoints called without a key, the default key appended to the
query string.
"""

import logging
from urllib.parse import urlencode

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from models.admission_models import AdmissionDecision, AdmissionReason
from models.alert_models import AlertKind
from utils.error_codes import ErrorCode, ErrorMessage
from utils.error_util import create_error_response
from utils.ip_policy_util import get_client_ip

logger = logging.getLogger('turnstile.gateway')

_REJECTIONS = {
    AdmissionReason.BLACKLISTED: (ErrorCode.SEC_IP_BLOCKED, ErrorMessage.SEC_IP_BLOCKED),
    AdmissionReason.RATE_LIMITED: (ErrorCode.RATE_LIMITED, ErrorMessage.RATE_LIMITED),
    AdmissionReason.KEY_MISSING: (ErrorCode.KEY_MISSING, ErrorMessage.KEY_MISSING),
    AdmissionReason.KEY_INVALID: (ErrorCode.KEY_INVALID, ErrorMessage.KEY_INVALID),
}


def with_query_param(query_string: bytes, name: str, value: str) -> bytes:
    extra = urlencode({name: value}).encode('latin-1')
    if not query_string:
        return extra
    return query_string + b'&' + extra


def rejection_response(decision: AdmissionDecision, now_ms: int):
    error_code, error_message = _REJECTIONS[decision.reason]
    headers = decision.rate_limit.to_headers(now_ms) if decision.rate_limit else None
    return create_error_response(decision.status_code, error_code, error_message, headers=headers)


class AdmissionMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get('type') != 'http':
            return await self.app(scope, receive, send)

        gateway = scope['app'].state.gateway
        request = Request(scope)
        path = request.url.path
        client_ip = get_client_ip(request, gateway.settings.trust_proxy)
        request.state.client_ip = client_ip

        decision = await gateway.pipeline.admit(
            client_ip, path, request.method, request.query_params, request.headers
        )
        request.state.admission = decision

        now_ms = gateway.rate_limiter.now_ms()
        if not decision.allow:
            logger.warning(
                f'Rejected {request.method} {path} from {client_ip}: {decision.reason.value} ({decision.status_code})'
            )
            if decision.reason == AdmissionReason.RATE_LIMITED:
                gateway.alerts.emit(AlertKind.RATE_LIMIT_TRIPPED, {'ip': client_ip, 'endpoint': path})
            response = rejection_response(decision, now_ms)
            await response(scope, receive, send)
            return

        if decision.injected_key:
            scope = dict(scope)
            scope['query_string'] = with_query_param(scope.get('query_string') or b'', 'apikey', decision.injected_key)

        if decision.rate_limit is None:
            return await self.app(scope, receive, send)

        extra_headers = [
            (k.lower().encode('latin-1'), v.encode('latin-1'))
            for k, v in decision.rate_limit.to_headers(now_ms).items()
        ]

        async def send_wrapper(message: Message) -> None:
            if message['type'] == 'http.response.start':
                message = {**message, 'headers': list(message.get('headers') or []) + extra_headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)
