import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from config import settings
from exceptions import AuthorityError, MalformedResponse, NetworkError
from license_store import LicenseStore
from models import (
    ActivationOutcome,
    AuthorityActivateResponse,
    AuthorityLicense,
    AuthorityVerifyResponse,
    LicenseConfig,
    VerificationResult,
)

logger = logging.getLogger(__name__)


def _result_from_license(valid: bool, message: str, license: Optional[AuthorityLicense]) -> VerificationResult:
    if license is None:
        return VerificationResult(valid=valid, message=message)
    return VerificationResult(
        valid=valid,
        message=message,
        tier=license.type,
        maxUsers=license.maxUsers,
        expiresAt=license.expiresAt,
        customerName=license.customerName
    )


class LicenseClient:
    def __init__(
        self,
        store: LicenseStore,
        timeout: float = settings.LICENSE_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.store = store
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        url = f"{self.store.resolve_authority_address()}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"}
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"license server timed out after {self.timeout:g}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(f"could not reach license server: {e}") from e

    async def verify(self, config: LicenseConfig) -> VerificationResult:
        """
        Verify the configured license with the authority.

        Raises NetworkError, AuthorityError or MalformedResponse; the
        verification cache decides what to do with them.
        """
        response = await self._post(
            "/api/verify",
            {"licenseKey": config.licenseKey, "domain": config.domain}
        )

        if not response.is_success:
            raise AuthorityError(
                f"license server responded with HTTP {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = AuthorityVerifyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponse(
                f"invalid verification response: {e}",
                status_code=response.status_code
            ) from e

        logger.debug("Verification for %s: valid=%s", config.domain, data.valid)
        return _result_from_license(data.valid, data.message, data.license)

    async def activate(self, domain: str, license_key: str) -> ActivationOutcome:
        """
        Activate a license with the authority.

        Persisting the pair and invalidating the cache is up to the caller.
        """
        try:
            response = await self._post(
                "/api/activate",
                {"licenseKey": license_key, "domain": domain}
            )

            try:
                data = AuthorityActivateResponse.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                if not response.is_success:
                    raise AuthorityError(
                        f"license server responded with HTTP {response.status_code}",
                        status_code=response.status_code
                    ) from e
                raise MalformedResponse(
                    f"invalid activation response: {e}",
                    status_code=response.status_code
                ) from e

        except (NetworkError, AuthorityError) as e:
            logger.warning("Activation for %s failed: %s", domain, e)
            return ActivationOutcome(success=False, message=f"activation failed: {e}")

        if not data.success:
            logger.info("Activation for %s refused: %s", domain, data.message)
            return ActivationOutcome(success=False, message=data.message)

        logger.info("License activated for %s", domain)
        return ActivationOutcome(
            success=True,
            message=data.message,
            license=_result_from_license(True, "License valid", data.license)
        )
