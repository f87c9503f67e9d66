"""
Activity Middleware

Counts every request, logs entry/completion with timing, tags responses with
X-Request-ID and reports completed requests to the activity webhook.
Plain static asset GETs are counted but not logged or reported.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from models.alert_models import AlertKind
from utils.ip_policy_util import get_client_ip
from utils.path_policy_util import is_static_asset

logger = logging.getLogger('turnstile.gateway')


class ActivityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        gateway = request.app.state.gateway
        gateway.count_request()
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        start_time = time.time() * 1000
        path = request.url.path
        client_ip = get_client_ip(request, gateway.settings.trust_proxy)
        log_this = not (is_static_asset(path) and request.method == 'GET' and not request.url.query)
        api_key_used = bool(request.query_params.get('apikey') or request.headers.get('x-api-key'))

        if log_this:
            logger.info(f'{request_id} | {request.method} {path} | From: {client_ip}')

        response = await call_next(request)
        duration_ms = int(time.time() * 1000 - start_time)
        response.headers['X-Request-ID'] = request_id

        if log_this:
            logger.info(f'{request_id} | {request.method} {path} | {response.status_code} | {duration_ms}ms')
            gateway.alerts.emit(
                AlertKind.REQUEST_COMPLETED,
                {
                    'ip': client_ip,
                    'method': request.method,
                    'endpoint': path,
                    'status_code': response.status_code,
                    'duration_ms': duration_ms,
                    'api_key_used': api_key_used,
                    'user_agent': request.headers.get('user-agent'),
                },
            )
        return response
