import logging

from license_cache import VerificationCache
from license_client import LicenseClient
from license_store import LicenseStore
from models import (
    ActivationOutcome,
    DisplayStatus,
    DomainInfo,
    FeatureDecision,
    LicenseTier,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# Features that need at least a Pro license
PRO_FEATURES = frozenset({"moviepilot", "telegram", "advanced-stats", "multi-emby"})

# Tiers that unlock every feature
UNRESTRICTED_TIERS = frozenset({LicenseTier.LIFETIME, LicenseTier.ENTERPRISE})

REQUIRES_PRO_MESSAGE = "This feature requires Pro or higher license"


class EntitlementGate:
    """
    The single entry point the rest of the application uses to ask
    whether the deployment is licensed and which features it may use.
    """

    def __init__(self, cache: VerificationCache, store: LicenseStore, client: LicenseClient):
        self.cache = cache
        self.store = store
        self.client = client

    async def get_status(self, force_refresh: bool = False) -> VerificationResult:
        return await self.cache.get_status(force_refresh=force_refresh)

    def invalidate(self):
        self.cache.invalidate()

    async def activate(self, domain: str, license_key: str) -> ActivationOutcome:
        """
        Activate with the license server and drop any cached verdict on success.

        The caller persists the domain/key pair.
        """
        outcome = await self.client.activate(domain, license_key)
        if outcome.success:
            self.cache.invalidate()
        return outcome

    async def check_feature(self, feature_name: str) -> FeatureDecision:
        """
        Check if a feature is available under the current license.
        """
        status = await self.cache.get_status()

        if not status.valid:
            return FeatureDecision(allowed=False, reason=status.message)

        if status.tier in UNRESTRICTED_TIERS:
            return FeatureDecision(allowed=True)

        if feature_name in PRO_FEATURES and status.tier != LicenseTier.PRO:
            logger.debug("Feature %s denied for tier %s", feature_name, status.tier)
            return FeatureDecision(allowed=False, reason=REQUIRES_PRO_MESSAGE)

        return FeatureDecision(allowed=True)

    async def get_display_status(self) -> DisplayStatus:
        config = self.store.read_config()

        if config is None:
            return DisplayStatus(configured=False, valid=False, info=None, config=None)

        status = await self.cache.get_status()
        return DisplayStatus(
            configured=True,
            valid=status.valid,
            info=status,
            config=DomainInfo(domain=config.domain)
        )
