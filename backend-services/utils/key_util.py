"""
API Key Validation

Allow-list check against the configured key set, plus default-key injection
for public endpoints. Injection is a convenience for handlers that forward a
key upstream, not an access control.
"""

from dataclasses import dataclass
from typing import NamedTuple

from models.admission_models import AdmissionReason
from models.endpoint_models import EndpointDefinition


class KeyCheckResult(NamedTuple):
    allow: bool
    reason: AdmissionReason
    injected_key: str | None = None


def extract_api_key(query_params, headers) -> str | None:
    """Query ``apikey`` takes precedence over the ``x-api-key`` header."""
    key = query_params.get('apikey')
    if key:
        return key
    return headers.get('x-api-key') or None


@dataclass(frozen=True)
class ApiKeyValidator:
    api_keys: tuple[str, ...] = ()
    inject_default: bool = True

    @property
    def default_key(self) -> str | None:
        return self.api_keys[0] if self.api_keys else None

    def is_valid(self, key: str | None) -> bool:
        return bool(key) and key in self.api_keys

    def check(self, endpoint: EndpointDefinition | None, supplied_key: str | None) -> KeyCheckResult:
        if endpoint is None:
            return KeyCheckResult(True, AdmissionReason.NOT_GATED)
        if not endpoint.requires_key:
            if not supplied_key and self.inject_default and self.default_key:
                return KeyCheckResult(True, AdmissionReason.NOT_GATED, injected_key=self.default_key)
            return KeyCheckResult(True, AdmissionReason.NOT_GATED)
        if not supplied_key:
            return KeyCheckResult(False, AdmissionReason.KEY_MISSING)
        if not self.is_valid(supplied_key):
            return KeyCheckResult(False, AdmissionReason.KEY_INVALID)
        return KeyCheckResult(True, AdmissionReason.KEY_VALID)
