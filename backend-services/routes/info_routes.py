"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information

Public informational routes: endpoint status, blacklist summary, caller IP
and the report/feature-request form.
"""

import logging
import time
import uuid

from fastapi import APIRouter, Request

from models.alert_models import AlertKind
from models.report_model import ReportModel
from models.response_model import ResponseModel
from utils.error_codes import ErrorCode
from utils.ip_policy_util import get_client_ip, mask_ip
from utils.response_util import process_response

info_router = APIRouter()
logger = logging.getLogger('turnstile.gateway')

REPORT_TEXT_LIMIT = 1000
REPORTER_NAME_LIMIT = 50


def _client_ip(request: Request) -> str | None:
    ip = getattr(request.state, 'client_ip', None)
    if ip:
        return ip
    return get_client_ip(request, request.app.state.gateway.settings.trust_proxy)


"""
Endpoint

Request:
{}
Response:
{"creator": "...", "data": {"/api/search": "Active"}, "total_requests": 12}
"""


@info_router.get('/endpoint-status', description='Status of every registered endpoint')
async def endpoint_status(request: Request):
    gateway = request.app.state.gateway
    return process_response(
        ResponseModel(
            status_code=200,
            response={
                'creator': gateway.creator,
                'data': gateway.registry.status_map(),
                'total_requests': gateway.total_requests,
            },
        ).dict(),
        'rest',
    )


"""
Endpoint

Request:
{}
Response:
{"status": true, "count": 2, "data": ["203.0.113.xxx", "2001:db8:85a3:xxxx:..."]}
"""


@info_router.get('/blacklist-info', description='Masked list of blocked IPs')
async def blacklist_info(request: Request):
    gateway = request.app.state.gateway
    masked = [mask_ip(ip) for ip in sorted(gateway.blacklist_cache.current)]
    return process_response(
        ResponseModel(
            status_code=200,
            response={'status': True, 'creator': gateway.creator, 'count': len(masked), 'data': masked},
        ).dict(),
        'rest',
    )


"""
Endpoint

Request:
{}
Response:
{"status": true, "ip": "203.0.113.7"}
"""


@info_router.get('/my-ip', description='IP address the gateway sees for the caller')
async def my_ip(request: Request):
    gateway = request.app.state.gateway
    return process_response(
        ResponseModel(
            status_code=200,
            response={'status': True, 'creator': gateway.creator, 'ip': _client_ip(request)},
        ).dict(),
        'rest',
    )


"""
Endpoint

Request:
{"report_type": "error", "name": "Jane", "text": "The search endpoint returns 500"}
Response:
{"status": true, "message": "Thank you! Your error report has been sent."}
"""


@info_router.post('/submit-report', description='Submit an error report or a feature request')
async def submit_report(request: Request):
    request_id = str(uuid.uuid4())
    start_time = time.time() * 1000
    gateway = request.app.state.gateway
    client_ip = _client_ip(request)
    try:
        try:
            body = await request.json()
        except ValueError:
            body = None
        report_type = body.get('report_type') if isinstance(body, dict) else None
        text = body.get('text') if isinstance(body, dict) else None
        if not isinstance(report_type, str) or not isinstance(text, str) or not text.strip():
            return process_response(
                ResponseModel(
                    status_code=400,
                    response_headers={'request_id': request_id},
                    error_code=ErrorCode.REP_INVALID,
                    error_message='Report type and text must not be empty',
                ).dict(),
                'rest',
            )
        if report_type not in ('error', 'feature'):
            logger.warning(f'{request_id} | Report rejected: unknown type {report_type!r} from {client_ip}')
            return process_response(
                ResponseModel(
                    status_code=400,
                    response_headers={'request_id': request_id},
                    error_code=ErrorCode.REP_INVALID,
                    error_message='Invalid report type',
                ).dict(),
                'rest',
            )
        name = body.get('name')
        name = name.strip()[:REPORTER_NAME_LIMIT] if isinstance(name, str) and name.strip() else 'Anonymous'
        report = ReportModel(report_type=report_type, name=name, text=text.strip()[:REPORT_TEXT_LIMIT])
        kind = AlertKind.FEATURE_REQUESTED if report.report_type == 'feature' else AlertKind.REPORT_SUBMITTED
        gateway.alerts.emit(kind, {'name': report.name, 'text': report.text, 'ip': client_ip})
        logger.info(f'{request_id} | {report.report_type} report received from {client_ip}')
        return process_response(
            ResponseModel(
                status_code=200,
                response_headers={'request_id': request_id},
                message=f'Thank you! Your {report.report_type} report has been sent.',
            ).dict(),
            'rest',
        )
    finally:
        end_time = time.time() * 1000
        logger.info(f'{request_id} | Total time: {str(end_time - start_time)}ms')
