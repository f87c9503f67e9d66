"""
Centralized Error Code Registry

Single source of truth for the error codes returned by the gateway.

Usage:
    from utils.error_codes import ErrorCode

    return ResponseModel(
        status_code=429,
        error_code=ErrorCode.RATE_LIMITED,
        error_message='Too many requests, try again later'
    ).dict()
"""


class ErrorCode:
    """
    Centralized error code constants.

    Naming Convention:
        - Format: CATEGORY_DESCRIPTION = 'PREFIX###'
        - Prefixes: SEC, RATE, KEY, ADM, REP, GTW, VAL
    """

    # Admission
    SEC_IP_BLOCKED = 'SEC011'  # Client IP is on the blacklist
    RATE_LIMITED = 'RATE001'  # Per-IP request quota exhausted
    KEY_MISSING = 'KEY001'  # Gated endpoint called without an API key
    KEY_INVALID = 'KEY002'  # API key not in the configured set

    # Admin
    ADM_INVALID_KEY = 'ADM001'  # Missing or wrong X-Admin-Key
    ADM_INVALID_IP = 'ADM002'  # Body/path does not contain a valid IP
    ADM_NOT_FOUND = 'ADM003'  # IP not present in the blacklist
    ADM_ALREADY_EXISTS = 'ADM004'  # IP already present in the blacklist
    ADM_CONFLICT = 'ADM409'  # Repository sha mismatch, retry
    ADM_REPOSITORY_ERROR = 'ADM502'  # Repository rejected or failed
    ADM_REPOSITORY_TIMEOUT = 'ADM504'  # Repository did not answer in time
    ADM_NOT_CONFIGURED = 'ADM500'  # Repository settings missing

    # Reports
    REP_INVALID = 'REP001'  # Empty text or unknown report type

    # Gateway
    GTW_NOT_FOUND = 'GTW404'  # No route matched
    GTW_INTERNAL_ERROR = 'GTW999'  # Unhandled exception in a handler
    VAL_ERROR = 'VAL001'  # Request validation failed


class ErrorMessage:
    SEC_IP_BLOCKED = 'Access from your IP address has been blocked'
    RATE_LIMITED = 'Too many requests, try again in a minute'
    KEY_MISSING = 'API key required. Add ?apikey=YOUR_KEY'
    KEY_INVALID = 'Invalid API key'
    ADM_INVALID_KEY = 'Access denied. Admin key is invalid or missing'
    GTW_INTERNAL_ERROR = 'Internal Server Error'
