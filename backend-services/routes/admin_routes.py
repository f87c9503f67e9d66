"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information

Admin routes for the persisted blacklist.

Every route requires the X-Admin-Key header. Mutations are written to the
repository with the sha read just before, so concurrent edits surface as a
retryable 409 instead of overwriting each other.
"""

import logging
import secrets
import time
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from models.alert_models import AlertKind
from models.report_model import BlacklistEntryModel
from models.response_model import ResponseModel
from utils.error_codes import ErrorCode, ErrorMessage
from utils.error_util import (
    BlacklistConflictError,
    BlacklistRepositoryError,
    BlacklistRepositoryTimeout,
)
from utils.ip_policy_util import get_client_ip, is_valid_ip
from utils.response_util import clip_message, process_response

admin_router = APIRouter()
logger = logging.getLogger('turnstile.admin')


class AdminKeyRejected(Exception):
    pass


async def admin_key_required(request: Request) -> str | None:
    """Constant-time comparison of X-Admin-Key against ADMIN_API_KEY."""
    gateway = request.app.state.gateway
    expected = gateway.settings.admin_api_key or ''
    supplied = request.headers.get('x-admin-key') or ''
    client_ip = get_client_ip(request, gateway.settings.trust_proxy)
    if not expected or not supplied or not secrets.compare_digest(supplied.encode(), expected.encode()):
        logger.warning(f'Admin access denied for {client_ip} on {request.url.path}')
        raise AdminKeyRejected()
    return client_ip


async def admin_key_rejected_handler(request: Request, exc: AdminKeyRejected) -> JSONResponse:
    return process_response(
        ResponseModel(
            status_code=403,
            error_code=ErrorCode.ADM_INVALID_KEY,
            error_message=ErrorMessage.ADM_INVALID_KEY,
        ).dict(),
        'rest',
    )


def _error(status_code: int, error_code: str, error_message: str, request_id: str, retryable: bool | None = None):
    return process_response(
        ResponseModel(
            status_code=status_code,
            response_headers={'request_id': request_id},
            error_code=error_code,
            error_message=clip_message(error_message),
            retryable=retryable,
        ).dict(),
        'rest',
    )


def _repository_error_response(e: BlacklistRepositoryError, request_id: str):
    if isinstance(e, BlacklistConflictError):
        return _error(409, ErrorCode.ADM_CONFLICT, str(e), request_id, retryable=True)
    if isinstance(e, BlacklistRepositoryTimeout):
        return _error(504, ErrorCode.ADM_REPOSITORY_TIMEOUT, str(e), request_id, retryable=True)
    return _error(502, ErrorCode.ADM_REPOSITORY_ERROR, str(e), request_id)


async def _mutate(request: Request, ip: str, admin_ip: str | None, add: bool):
    request_id = str(uuid.uuid4())
    start_time = time.time() * 1000
    gateway = request.app.state.gateway
    action = 'add' if add else 'remove'
    try:
        logger.info(f'{request_id} | Admin {action} {ip} | From: {admin_ip}')
        if gateway.admin is None:
            return _error(500, ErrorCode.ADM_NOT_CONFIGURED, 'Blacklist repository is not configured', request_id)
        ip = (ip or '').strip()
        if not is_valid_ip(ip):
            return _error(400, ErrorCode.ADM_INVALID_IP, 'A valid IP address is required', request_id)
        try:
            changed = await (gateway.admin.add_ip(ip) if add else gateway.admin.remove_ip(ip))
        except BlacklistRepositoryError as e:
            logger.error(f'{request_id} | Admin {action} {ip} failed: {e}')
            return _repository_error_response(e, request_id)
        if not changed:
            if add:
                return _error(409, ErrorCode.ADM_ALREADY_EXISTS, f'IP {ip} is already blacklisted', request_id)
            return _error(404, ErrorCode.ADM_NOT_FOUND, f'IP {ip} is not blacklisted', request_id)

        gateway.alerts.emit(
            AlertKind.BLACKLIST_MUTATED,
            {'action': 'added' if add else 'removed', 'ip': ip, 'admin_ip': admin_ip, 'timestamp': int(time.time())},
        )
        await gateway.blacklist.refresh()
        return process_response(
            ResponseModel(
                status_code=200,
                response_headers={'request_id': request_id},
                message=f'IP {ip} {"added to" if add else "removed from"} the blacklist',
            ).dict(),
            'rest',
        )
    finally:
        end_time = time.time() * 1000
        logger.info(f'{request_id} | Total time: {str(end_time - start_time)}ms')


"""
Endpoint

Request:
{}
Response:
{"status": true, "count": 1, "data": ["203.0.113.7"]}
"""


@admin_router.get('/blacklist', description='Full persisted blacklist')
async def list_blacklist(request: Request, admin_ip: str | None = Depends(admin_key_required)):
    request_id = str(uuid.uuid4())
    gateway = request.app.state.gateway
    if gateway.admin is None:
        return _error(500, ErrorCode.ADM_NOT_CONFIGURED, 'Blacklist repository is not configured', request_id)
    try:
        ips = await gateway.admin.list_ips()
    except BlacklistRepositoryError as e:
        logger.error(f'{request_id} | Admin list failed: {e}')
        return _repository_error_response(e, request_id)
    return process_response(
        ResponseModel(
            status_code=200,
            response_headers={'request_id': request_id},
            response={'status': True, 'count': len(ips), 'data': ips},
        ).dict(),
        'rest',
    )


"""
Endpoint

Request:
{"ip": "203.0.113.7"}
Response:
{"status": true, "message": "IP 203.0.113.7 added to the blacklist"}
"""


@admin_router.post('/blacklist', description='Add an IP to the persisted blacklist')
async def add_to_blacklist(
    request: Request, body: BlacklistEntryModel, admin_ip: str | None = Depends(admin_key_required)
):
    return await _mutate(request, body.ip, admin_ip, add=True)


@admin_router.delete('/blacklist/{ip}', description='Remove an IP from the persisted blacklist')
async def remove_from_blacklist(request: Request, ip: str, admin_ip: str | None = Depends(admin_key_required)):
    return await _mutate(request, ip, admin_ip, add=False)
