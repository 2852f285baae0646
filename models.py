from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, NonNegativeInt, StrictBool


class LicenseTier(str, Enum):
    STANDARD = "standard"
    PRO = "pro"
    ENTERPRISE = "enterprise"
    LIFETIME = "lifetime"


# Core entitlement state
class LicenseConfig(BaseModel):
    domain: str
    licenseKey: str


class VerificationResult(BaseModel):
    valid: bool
    message: str
    tier: Optional[LicenseTier] = None
    maxUsers: Optional[NonNegativeInt] = None
    expiresAt: Optional[str] = None  # None means the license never expires
    customerName: Optional[str] = None


class ActivationOutcome(BaseModel):
    success: bool
    message: str
    license: Optional[VerificationResult] = None


class FeatureDecision(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class DomainInfo(BaseModel):
    domain: str


class DisplayStatus(BaseModel):
    configured: bool
    valid: bool
    info: Optional[VerificationResult] = None
    config: Optional[DomainInfo] = None


# License authority wire format
class AuthorityLicense(BaseModel):
    type: Optional[LicenseTier] = None
    maxUsers: Optional[NonNegativeInt] = None
    expiresAt: Optional[str] = None
    customerName: Optional[str] = None


class AuthorityVerifyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    valid: StrictBool
    message: str = ""
    license: Optional[AuthorityLicense] = None


class AuthorityActivateResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: StrictBool
    message: str = ""
    license: Optional[AuthorityLicense] = None


# API request/response models
class LicenseActivationRequest(BaseModel):
    domain: str
    licenseKey: str


class LicenseConfigUpdateRequest(BaseModel):
    domain: str
    licenseKey: str


class FeatureCheckRequest(BaseModel):
    featureKey: str


class FeatureCheckResponse(BaseModel):
    featureKey: str
    allowed: bool
    reason: Optional[str] = None


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    authority: str


class ValidationAttemptResponse(BaseModel):
    domain: Optional[str] = None
    result: str
    errorMessage: Optional[str] = None
    attemptedAt: Optional[datetime] = None
