"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from dataclasses import dataclass
from enum import Enum

from models.endpoint_models import EndpointDefinition
from models.rate_limit_models import RateLimitResult


class AdmissionReason(str, Enum):
    BLACKLISTED = 'Blacklisted'
    RATE_LIMITED = 'RateLimited'
    KEY_MISSING = 'KeyMissing'
    KEY_INVALID = 'KeyInvalid'
    NOT_GATED = 'NotGated'
    KEY_VALID = 'KeyValid'


class AdmissionStage(str, Enum):
    BLACKLIST = 'blacklist'
    RATE_LIMIT = 'rate_limit'
    KEY_CHECK = 'key_check'
    ADMITTED = 'admitted'


@dataclass(frozen=True)
class RequestContext:
    ip: str | None
    path: str
    method: str


@dataclass
class AdmissionDecision:
    """Outcome of running one request through the admission pipeline"""

    allow: bool
    reason: AdmissionReason
    stage: AdmissionStage
    context: RequestContext
    rate_limit: RateLimitResult | None = None
    endpoint: EndpointDefinition | None = None
    injected_key: str | None = None
    api_key_used: bool = False

    @property
    def status_code(self) -> int:
        if self.allow:
            return 200
        return {
            AdmissionReason.BLACKLISTED: 403,
            AdmissionReason.RATE_LIMITED: 429,
            AdmissionReason.KEY_MISSING: 401,
            AdmissionReason.KEY_INVALID: 403,
        }.get(self.reason, 403)
