"""
Verification Cache.

Holds the last verification result for the lifetime of the process and
decides when to go back to the license server:

- Within the refresh interval the cached result is returned as-is, so the
  authority sees at most one unforced request per interval.
- When a refresh fails (timeout, transport error, bad status, bad body) the
  previous result is kept and its timestamp is left alone, so an outage
  never revokes access and the next call retries straight away.
- Only the first failure in a process, with nothing cached yet, produces a
  "verification failed" result.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from config import settings
from database import AttemptLog
from exceptions import AuthorityError, MalformedResponse, NetworkError
from license_client import LicenseClient
from license_store import LicenseStore
from models import LicenseConfig, VerificationResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "License not configured: set the license domain and license key in settings"


@dataclass
class CacheEntry:
    result: VerificationResult
    last_verified_at: float


class VerificationCache:
    def __init__(
        self,
        client: LicenseClient,
        store: LicenseStore,
        refresh_interval: float = settings.VERIFY_INTERVAL_SECONDS,
        attempt_log: Optional[AttemptLog] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.client = client
        self.store = store
        self.refresh_interval = refresh_interval
        self.attempt_log = attempt_log
        self.clock = clock

        self._entry: Optional[CacheEntry] = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    def _is_fresh(self) -> bool:
        return (
            self._entry is not None
            and self.clock() - self._entry.last_verified_at < self.refresh_interval
        )

    def _store(self, result: VerificationResult, generation: int) -> VerificationResult:
        # An invalidate() while the refresh was in flight wins over its result.
        if generation == self._generation:
            self._entry = CacheEntry(result=result, last_verified_at=self.clock())
        else:
            logger.debug("Cache invalidated during refresh, result not stored")
        return result

    async def _record(self, config: LicenseConfig, result: str, error_message: Optional[str] = None):
        # Blocking database write, kept off the event loop.
        if self.attempt_log is not None:
            await asyncio.to_thread(
                self.attempt_log.record, config.licenseKey, config.domain, result, error_message)

    async def get_status(self, force_refresh: bool = False) -> VerificationResult:
        """
        Get the current verification result, refreshing it when stale.

        Never raises for network or authority failures.
        """
        if not force_refresh and self._is_fresh():
            return self._entry.result

        async with self._lock:
            # Another caller may have refreshed while we waited for the lock.
            if not force_refresh and self._is_fresh():
                return self._entry.result

            generation = self._generation
            config = self.store.read_config()

            if config is None:
                logger.info("License not configured")
                return self._store(
                    VerificationResult(valid=False, message=NOT_CONFIGURED_MESSAGE),
                    generation
                )

            try:
                result = await self.client.verify(config)
            except (NetworkError, AuthorityError) as e:
                kind = "failed" if isinstance(e, AuthorityError) else "offline"
                if isinstance(e, MalformedResponse):
                    logger.warning("Malformed response from license server: %s", e)
                await self._record(config, kind, f"{type(e).__name__}: {e}")

                if self._entry is not None:
                    logger.warning("License verification %s (%s), keeping cached result", kind, e)
                    return self._entry.result

                logger.warning("License verification %s (%s), no cached result", kind, e)
                return self._store(
                    VerificationResult(valid=False, message=f"verification failed: {e}"),
                    generation
                )

            await self._record(config, "success" if result.valid else "invalid",
                               None if result.valid else result.message)
            logger.info("License verified for %s: valid=%s tier=%s",
                        config.domain, result.valid, result.tier.value if result.tier else None)
            return self._store(result, generation)

    def invalidate(self):
        """
        Drop the cached result so the next get_status() goes to the server.
        """
        self._entry = None
        self._generation += 1
        logger.debug("License cache invalidated")
