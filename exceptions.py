"""
Error taxonomy for license verification.

These are raised by the verification client and absorbed by the
verification cache; nothing above the cache ever sees them.
"""

from typing import Optional


class LicenseError(Exception):
    """Base class for all entitlement errors."""


class ConfigurationMissing(LicenseError):
    """No domain/license key pair is recorded. A stable state, not a failure."""


class NetworkError(LicenseError):
    """The authority could not be reached (timeout or transport failure)."""


class AuthorityError(LicenseError):
    """The authority answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(AuthorityError):
    """The authority's response body could not be parsed or validated."""
