"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from logging.handlers import RotatingFileHandler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from dotenv import load_dotenv
import collections.abc
import logging
import json
import re
import os
import sys
import time
import uvicorn

from models.endpoint_models import RouteEntry, base_path
from models.response_model import ResponseModel
from middleware.activity_middleware import ActivityMiddleware
from middleware.admission_middleware import AdmissionMiddleware
from middleware.error_boundary_middleware import ErrorBoundaryMiddleware
from routes.admin_routes import AdminKeyRejected, admin_key_rejected_handler, admin_router
from routes.index_routes import index_router
from routes.info_routes import info_router
from services.gateway_service import build_gateway_state
from utils.config_util import GatewaySettings, SettingsDocument, load_settings, load_settings_document
from utils.error_codes import ErrorCode
from utils.path_policy_util import is_static_asset
from utils.response_util import clip_message, process_response

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_env_logs_dir = os.getenv('LOGS_DIR')
LOGS_DIR = os.path.abspath(_env_logs_dir) if _env_logs_dir else os.path.join(BASE_DIR, 'logs')

# Build formatters
class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': self.formatTime(record, '%Y-%m-%dT%H:%M:%S'),
            'name': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
        }
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        try:
            return json.dumps(payload, ensure_ascii=False)
        except Exception:
            return f'{payload}'

class RedactFilter(logging.Filter):
    """Logging redaction filter for secrets that may appear in messages.

    Redacts:
    - API keys (query string and x-api-key header)
    - Admin keys
    - GitHub tokens
    - Discord webhook URLs
    """

    PATTERNS = [
        re.compile(r'(?i)(x-api-key\s*[:=]\s*)([^;\s&,]+)'),
        re.compile(r'(?i)([?&]apikey=)([^&\s]+)'),
        re.compile(r'(?i)(x-admin-key\s*[:=]\s*)([^;\s&,]+)'),
        re.compile(r'(?i)(admin[_-]?api[_-]?key\s*[:=]\s*)([^;\s&,]+)'),
        re.compile(r'(?i)(authorization\s*[:=]\s*)([^;\r\n]+)'),
        re.compile(r'(?i)(token\s*["\']?\s*[:=]\s*["\']?)([a-zA-Z0-9_\-\.]{20,})'),
        re.compile(r'\b(gh[pousr]_[A-Za-z0-9]{20,})\b'),
        re.compile(r'(https://(?:[a-z]+\.)?discord(?:app)?\.com/api/webhooks/)(\S+)'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = str(record.getMessage())
            red = msg
            for pat in self.PATTERNS:
                if pat.groups >= 2:
                    red = pat.sub(lambda m: m.group(1) + '[REDACTED]', red)
                else:
                    red = pat.sub('[REDACTED]', red)
            if red != msg:
                record.msg = red
                record.args = None
        except Exception:
            pass
        return True

_fmt_is_json = os.getenv('LOG_FORMAT', 'plain').lower() == 'json'
_log_level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
_file_handler = None
try:
    os.makedirs(LOGS_DIR, exist_ok=True)
    _file_handler = RotatingFileHandler(
        filename=os.path.join(LOGS_DIR, 'turnstile.log'),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    _file_handler.setFormatter(JSONFormatter() if _fmt_is_json else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    _file_handler.addFilter(RedactFilter())
except Exception as _e:
    logging.getLogger('turnstile.gateway').warning(f'File logging disabled ({_e}); using console logging only')
    _file_handler = None

# Configure all turnstile loggers to use the same handlers and prevent propagation
def configure_logger(logger_name):
    logger = logging.getLogger(logger_name)
    logger.setLevel(_log_level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(_log_level)
    console.setFormatter(JSONFormatter() if _fmt_is_json else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    console.addFilter(RedactFilter())
    logger.addHandler(console)

    if _file_handler is not None:
        logger.addHandler(_file_handler)
    return logger

gateway_logger = configure_logger('turnstile.gateway')
alerts_logger = configure_logger('turnstile.alerts')
admin_logger = configure_logger('turnstile.admin')

def create_app(
    settings: GatewaySettings | None = None,
    document: SettingsDocument | None = None,
    routes: collections.abc.Iterable[RouteEntry] = (),
    http_client=None,
    redis_client=None,
    clock=time.time,
) -> FastAPI:
    """Build the gateway application.

    Configuration problems raise ConfigurationError here, before the server
    binds a port.
    """
    if settings is None:
        settings = load_settings()
    else:
        settings.validate_startup()
    if document is None:
        document = load_settings_document(settings.settings_file)
    routes = list(routes)

    gateway = build_gateway_state(
        settings, document, routes=routes, http_client=http_client, redis_client=redis_client, clock=clock
    )

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()
            gateway_logger.info('Gateway stopped')

    app = FastAPI(title='Turnstile', description='API gateway with IP admission control', lifespan=app_lifespan)
    app.state.gateway = gateway

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception):
        path = request.url.path
        if not is_static_asset(path):
            gateway_logger.warning(f'404 Not Found: {request.method} {path}')
        return process_response(ResponseModel(
            status_code=404,
            error_code=ErrorCode.GTW_NOT_FOUND,
            error_message=clip_message(f'Route {path} not found')
        ).dict(), 'rest')

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return process_response(ResponseModel(
            status_code=422,
            error_code=ErrorCode.VAL_ERROR,
            error_message='Validation Error'
        ).dict(), 'rest')

    app.add_exception_handler(AdminKeyRejected, admin_key_rejected_handler)

    app.include_router(index_router, tags=['Pages'])
    app.include_router(info_router, prefix='/api', tags=['Info'])
    app.include_router(admin_router, prefix='/admin', tags=['Admin'])

    for entry in routes:
        app.add_api_route(
            base_path(entry.path),
            entry.handler,
            methods=[m.upper() for m in entry.methods],
            name=entry.name,
            tags=[entry.category] if entry.category else None,
        )
        gateway_logger.info(f'Registered {",".join(entry.methods)} {base_path(entry.path)} (key required: {entry.requires_key})')

    if settings.static_dir:
        if os.path.isdir(settings.static_dir):
            app.mount('/', StaticFiles(directory=settings.static_dir), name='static')
        else:
            gateway_logger.warning(f'STATIC_DIR {settings.static_dir} does not exist; static files disabled')

    # Last added runs first: activity -> error boundary -> admission -> routes
    app.add_middleware(AdmissionMiddleware)
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(ActivityMiddleware)
    return app

def main():
    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', '8000'))
    try:
        uvicorn.run(
            'turnstile:create_app',
            factory=True,
            host=host,
            port=port,
            reload=os.getenv('DEBUG', 'false').lower() == 'true'
        )
    except Exception as e:
        gateway_logger.error(f'Failed to start server: {str(e)}')
        raise

if __name__ == '__main__':
    main()
