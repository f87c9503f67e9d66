"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AlertKind(str, Enum):
    RATE_LIMIT_TRIPPED = 'RateLimitTripped'
    REPORT_SUBMITTED = 'ReportSubmitted'
    FEATURE_REQUESTED = 'FeatureRequested'
    INTERNAL_ERROR = 'InternalError'
    REQUEST_COMPLETED = 'RequestCompleted'
    BLACKLIST_MUTATED = 'BlacklistMutated'


@dataclass(frozen=True)
class IpInfo:
    isp: str
    country: str = 'N/A'
    city: str = 'N/A'
    org: str = 'N/A'

    @classmethod
    def placeholder(cls, isp: str) -> 'IpInfo':
        return cls(isp=isp)


LOCAL_IP_INFO = IpInfo.placeholder('Local/Internal')
LOOKUP_FAILED = IpInfo.placeholder('Lookup Failed')
LOOKUP_TIMEOUT = IpInfo.placeholder('Lookup Timeout')
LOOKUP_ERROR = IpInfo.placeholder('Lookup Error')


@dataclass
class Alert:
    kind: AlertKind
    payload: dict[str, Any] = field(default_factory=dict)
