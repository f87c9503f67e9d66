"""
Standardized error types and response utilities
"""

from models.response_model import ResponseModel
from utils.response_util import clip_message, process_response


class ConfigurationError(RuntimeError):
    """Startup configuration is missing or malformed. The process must not start."""


class BlacklistRepositoryError(Exception):
    """The persisted blacklist could not be read or written."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class BlacklistConflictError(BlacklistRepositoryError):
    """Optimistic-concurrency conflict: the stored document changed since it was read."""

    def __init__(self, message: str = 'Blacklist update conflict, retry the operation'):
        super().__init__(message, status_code=409, retryable=True)


class BlacklistRepositoryTimeout(BlacklistRepositoryError):
    def __init__(self, message: str = 'Blacklist repository timed out'):
        super().__init__(message, status_code=None, retryable=True)


def create_error_response(
    status_code: int,
    error_code: str,
    error_message: str,
    request_id: str | None = None,
    headers: dict[str, str] | None = None,
    retryable: bool | None = None,
):
    """
    Create a standardized error response using ResponseModel.
    """
    response_headers = dict(headers or {})
    if request_id:
        response_headers['request_id'] = request_id
    response_model = ResponseModel(
        status_code=status_code,
        response_headers=response_headers or None,
        error_code=error_code,
        error_message=clip_message(error_message),
        retryable=retryable,
    )
    return process_response(response_model.dict(), 'rest')

