"""
Response envelope.

Every JSON answer the gateway produces itself goes through here so status
codes, error bodies and the X-Request-ID header look the same everywhere.
"""

import logging

from fastapi.responses import JSONResponse

from models.response_model import ResponseModel

logger = logging.getLogger('turnstile.gateway')

MESSAGE_MAX_LENGTH = 255


def clip_message(message: str, limit: int = MESSAGE_MAX_LENGTH) -> str:
    """Fit a message into the envelope's error_message/message length."""
    if len(message) <= limit:
        return message
    return message[: limit - 3] + '...'


def _normalize_headers(hdrs: dict | None) -> dict | None:
    """Drop unset values and expose ``request_id`` as X-Request-ID."""
    if not hdrs:
        return None
    out = {str(k): str(v) for k, v in hdrs.items() if v is not None}
    rid = out.pop('request_id', None)
    if rid and 'X-Request-ID' not in out:
        out['X-Request-ID'] = rid
    return out


def _error_body(response: ResponseModel) -> dict:
    body = {'status': False}
    if response.error_code:
        body['error_code'] = response.error_code
    body['error_message'] = response.error_message or response.message or 'Request failed'
    if response.retryable is not None:
        body['retryable'] = response.retryable
    return body


def process_rest_response(response: ResponseModel) -> JSONResponse:
    status_code = int(response.status_code or 200)
    headers = _normalize_headers(response.response_headers)
    if 200 <= status_code < 300:
        if response.response is not None:
            content = response.response
        elif response.message:
            content = {'status': True, 'message': response.message}
        else:
            content = {}
        return JSONResponse(content=content, status_code=status_code, headers=headers)
    return JSONResponse(content=_error_body(response), status_code=status_code, headers=headers)


def process_response(response, type='rest'):
    response = ResponseModel(**response)
    if type == 'rest':
        return process_rest_response(response)
    logger.error(f'Unhandled response type: {type}')
    return JSONResponse(content={'status': False, 'error_message': 'Unhandled response type'}, status_code=500)
