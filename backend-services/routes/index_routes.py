"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import logging
import os

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response

index_router = APIRouter()
logger = logging.getLogger('turnstile.gateway')


def _page(request: Request, filename: str, label: str) -> Response:
    pages_dir = request.app.state.gateway.settings.pages_dir
    page_path = os.path.join(pages_dir, filename)
    if not os.path.isfile(page_path):
        logger.error(f'{label} page not found: {page_path}')
        return PlainTextResponse(f'404 Not Found: {label} page not found.', status_code=404)
    return FileResponse(page_path, media_type='text/html')


@index_router.get('/', include_in_schema=False)
async def index_page(request: Request) -> Response:
    return _page(request, 'index.html', 'Home')


@index_router.get('/manage-blacklist', include_in_schema=False)
async def manage_blacklist_page(request: Request) -> Response:
    return _page(request, 'admin.html', 'Admin')
