"""
Error Boundary Middleware

Last line of defence around admission and the handlers: an unhandled
exception becomes a generic 500 and an InternalError alert. In stateful mode
the endpoint status also flips to Error.
"""

import logging

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from models.alert_models import AlertKind
from utils.error_codes import ErrorCode, ErrorMessage
from utils.error_util import create_error_response
from utils.ip_policy_util import get_client_ip

logger = logging.getLogger('turnstile.gateway')


class ErrorBoundaryMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get('type') != 'http':
            return await self.app(scope, receive, send)

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message['type'] == 'http.response.start':
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            gateway = scope['app'].state.gateway
            request = Request(scope)
            path = request.url.path
            client_ip = getattr(request.state, 'client_ip', None) or get_client_ip(
                request, gateway.settings.trust_proxy
            )
            logger.error(f'Unhandled error on {request.method} {path} from {client_ip}: {e}', exc_info=True)
            gateway.alerts.emit(
                AlertKind.INTERNAL_ERROR,
                {'ip': client_ip, 'endpoint': path, 'error_message': f'{type(e).__name__}: {e}'},
            )
            if gateway.settings.stateful:
                gateway.registry.mark_error(path)
            if response_started:
                raise
            response = create_error_response(500, ErrorCode.GTW_INTERNAL_ERROR, ErrorMessage.GTW_INTERNAL_ERROR)
            await response(scope, receive, send)
