"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone

import httpx

from utils.error_util import (
    BlacklistConflictError,
    BlacklistRepositoryError,
    BlacklistRepositoryTimeout,
)

logger = logging.getLogger('turnstile.admin')


class BlacklistRepository:
    """Persisted blacklist stored as a JSON array in a GitHub repository file.

    Reads return the file sha used for optimistic concurrency on writes; a
    write carrying a stale sha is rejected by the API with 409.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        username: str,
        repo: str,
        token: str,
        file_path: str = 'blacklist.json',
        branch: str | None = None,
        api_base: str = 'https://api.github.com',
        read_timeout: float = 10.0,
        write_timeout: float = 15.0,
    ):
        self.client = client
        self.url = f'{api_base.rstrip("/")}/repos/{username}/{repo}/contents/{file_path.lstrip("/")}'
        self.branch = branch
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.headers = {
            'Authorization': f'token {token}',
            'Accept': 'application/vnd.github.v3+json',
            'Cache-Control': 'no-cache',
        }

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        status = response.status_code
        if status in (401, 403):
            logger.error(f'Repository authentication failed during {operation}; check GITHUB_TOKEN')
            raise BlacklistRepositoryError('Repository authentication failed', status_code=status)
        if status == 409:
            logger.warning(f'Repository conflict during {operation} (sha mismatch)')
            raise BlacklistConflictError()
        if status == 422:
            logger.error(f'Repository rejected {operation} payload (422)')
            raise BlacklistRepositoryError('Repository rejected the update', status_code=status)
        if not response.is_success:
            logger.error(f'Repository {operation} failed with HTTP {status}')
            raise BlacklistRepositoryError(f'Repository {operation} failed', status_code=status)

    async def read(self) -> tuple[list[str], str | None]:
        """Return (ips, sha). A missing file is an empty list with no sha."""
        params = {'ref': self.branch} if self.branch else None
        try:
            response = await self.client.get(self.url, headers=self.headers, params=params, timeout=self.read_timeout)
        except httpx.TimeoutException as e:
            raise BlacklistRepositoryTimeout('Timed out reading the blacklist file') from e
        except httpx.HTTPError as e:
            raise BlacklistRepositoryError(f'Repository unreachable: {e}') from e
        if response.status_code == 404:
            logger.warning('Blacklist file not found in repository; it will be created on first update')
            return [], None
        self._raise_for_status(response, 'read')
        try:
            doc = response.json()
            raw = base64.b64decode(doc.get('content') or '')
            ips = json.loads(raw.decode('utf-8')) if raw.strip() else []
        except (ValueError, binascii.Error, AttributeError) as e:
            raise BlacklistRepositoryError(f'Blacklist file is malformed: {e}') from e
        if not isinstance(ips, list):
            raise BlacklistRepositoryError('Blacklist file must contain a JSON array')
        return [ip.strip() for ip in ips if isinstance(ip, str) and ip.strip()], doc.get('sha')

    async def write(self, ips: list[str], sha: str | None, message: str | None = None) -> str | None:
        """Replace the file content. Returns the new commit sha when reported."""
        content = json.dumps(list(ips), indent=2).encode('utf-8')
        body = {
            'message': message or f'Update blacklist via API {datetime.now(timezone.utc).isoformat()}',
            'content': base64.b64encode(content).decode('ascii'),
        }
        if sha:
            body['sha'] = sha
        if self.branch:
            body['branch'] = self.branch
        try:
            response = await self.client.put(self.url, headers=self.headers, json=body, timeout=self.write_timeout)
        except httpx.TimeoutException as e:
            raise BlacklistRepositoryTimeout('Timed out updating the blacklist file') from e
        except httpx.HTTPError as e:
            raise BlacklistRepositoryError(f'Repository unreachable: {e}') from e
        self._raise_for_status(response, 'update')
        try:
            commit_sha = (response.json().get('commit') or {}).get('sha')
        except ValueError:
            commit_sha = None
        logger.info(f'Blacklist file updated, commit {commit_sha}')
        return commit_sha


class BlacklistAdminService:
    """Add/remove operations on the persisted blacklist"""

    def __init__(self, repository: BlacklistRepository):
        self.repository = repository

    async def list_ips(self) -> list[str]:
        ips, _ = await self.repository.read()
        return ips

    async def add_ip(self, ip: str) -> bool:
        """Return False when the IP was already listed (no write happens)."""
        ips, sha = await self.repository.read()
        if ip in ips:
            return False
        await self.repository.write(ips + [ip], sha, message=f'Blacklist {ip}')
        return True

    async def remove_ip(self, ip: str) -> bool:
        """Return False when the IP was not listed (no write happens)."""
        ips, sha = await self.repository.read()
        if ip not in ips:
            return False
        await self.repository.write([i for i in ips if i != ip], sha, message=f'Unblacklist {ip}')
        return True
