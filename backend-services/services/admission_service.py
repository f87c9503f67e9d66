"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import logging
from collections.abc import Mapping

from models.admission_models import (
    AdmissionDecision,
    AdmissionReason,
    AdmissionStage,
    RequestContext,
)
from utils.endpoint_registry import EndpointRegistry
from utils.key_util import ApiKeyValidator, extract_api_key
from utils.path_policy_util import StageExemptions
from utils.rate_limiter import RateLimiter

logger = logging.getLogger('turnstile.gateway')


class AdmissionPipeline:
    """Blacklist -> RateLimit -> EndpointResolve -> KeyCheck, in that order.

    The first rejecting stage decides the outcome; later stages do not run.
    Each stage has its own exemption rule.
    """

    def __init__(
        self,
        blacklist,
        rate_limiter: RateLimiter,
        registry: EndpointRegistry,
        key_validator: ApiKeyValidator,
        exemptions: StageExemptions | None = None,
    ):
        self.blacklist = blacklist
        self.rate_limiter = rate_limiter
        self.registry = registry
        self.key_validator = key_validator
        self.exemptions = exemptions or StageExemptions()

    async def admit(
        self,
        ip: str | None,
        path: str,
        method: str,
        query_params: Mapping[str, str],
        headers: Mapping[str, str],
    ) -> AdmissionDecision:
        context = RequestContext(ip=ip, path=path, method=method)
        supplied_key = extract_api_key(query_params, headers)

        def reject(reason: AdmissionReason, stage: AdmissionStage, **extra) -> AdmissionDecision:
            return AdmissionDecision(
                allow=False, reason=reason, stage=stage, context=context, api_key_used=bool(supplied_key), **extra
            )

        if not self.exemptions.blacklist.matches(path):
            try:
                blocked = await self.blacklist.is_blocked(ip)
            except Exception as e:
                logger.error(f'Blacklist check error, admitting request: {e}')
                blocked = False
            if blocked:
                return reject(AdmissionReason.BLACKLISTED, AdmissionStage.BLACKLIST)

        rate_limit = None
        if not self.exemptions.rate_limit.matches(path):
            rate_limit = await self.rate_limiter.check(ip)
            if not rate_limit.allowed:
                return reject(AdmissionReason.RATE_LIMITED, AdmissionStage.RATE_LIMIT, rate_limit=rate_limit)

        if self.exemptions.key_check.matches(path):
            return AdmissionDecision(
                allow=True,
                reason=AdmissionReason.NOT_GATED,
                stage=AdmissionStage.ADMITTED,
                context=context,
                rate_limit=rate_limit,
                api_key_used=bool(supplied_key),
            )

        endpoint = self.registry.resolve(path)
        result = self.key_validator.check(endpoint, supplied_key)
        if not result.allow:
            return reject(result.reason, AdmissionStage.KEY_CHECK, rate_limit=rate_limit, endpoint=endpoint)
        return AdmissionDecision(
            allow=True,
            reason=result.reason,
            stage=AdmissionStage.ADMITTED,
            context=context,
            rate_limit=rate_limit,
            endpoint=endpoint,
            injected_key=result.injected_key,
            api_key_used=bool(supplied_key),
        )
