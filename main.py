import logging
from contextlib import asynccontextmanager
from typing import List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import AttemptLog, init_db
from entitlements import EntitlementGate
from license_cache import VerificationCache
from license_client import LicenseClient
from license_store import LicenseStore
from models import (
    ActivationOutcome,
    DisplayStatus,
    FeatureCheckRequest,
    FeatureCheckResponse,
    HealthCheckResponse,
    LicenseActivationRequest,
    LicenseConfigUpdateRequest,
    ValidationAttemptResponse,
    VerificationResult,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s"
)
logger = logging.getLogger(__name__)


def build_gate(attempt_log: AttemptLog) -> EntitlementGate:
    """
    Wire the entitlement components once per process.
    """
    store = LicenseStore.from_settings()
    client = LicenseClient(store)
    cache = VerificationCache(client, store, attempt_log=attempt_log)
    return EntitlementGate(cache, store, client)


def start_revalidation(
    gate: EntitlementGate,
    check_seconds: int = settings.REVALIDATION_CHECK_SECONDS
) -> AsyncIOScheduler:
    """
    Keep the cache warm.

    The job never forces, so it is a no-op while the cached result is fresh
    and the throttle still holds. It runs more often than the refresh
    interval so a refresh happens at most one check period after expiry.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        gate.get_status,
        'interval',
        seconds=min(check_seconds, settings.VERIFY_INTERVAL_SECONDS),
        id='license_revalidation'
    )
    scheduler.start()
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    attempt_log = AttemptLog()
    gate = build_gate(attempt_log)
    app.state.gate = gate
    app.state.attempt_log = attempt_log

    # Verify once at startup; a fresh process never trusts earlier state.
    status = await gate.get_status()
    logger.info("Startup license status: valid=%s (%s)", status.valid, status.message)

    scheduler = start_revalidation(gate) if settings.BACKGROUND_REVALIDATION else None
    try:
        yield
    finally:
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)


app = FastAPI(
    title="FlixPilot License Client Service",
    description="License verification and feature gating for FlixPilot deployments",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def get_gate(request: Request) -> EntitlementGate:
    return request.app.state.gate

def get_store(gate: EntitlementGate = Depends(get_gate)) -> LicenseStore:
    return gate.store

def get_attempt_log(request: Request) -> AttemptLog:
    return request.app.state.attempt_log

# API Endpoints
@app.get("/api/license/status", response_model=DisplayStatus)
async def get_license_status(gate: EntitlementGate = Depends(get_gate)):
    """
    Get current license status for display.

    Served from the verification cache; refreshes at most once an hour.
    """
    return await gate.get_display_status()

@app.post("/api/license/verify", response_model=VerificationResult)
async def verify_license(gate: EntitlementGate = Depends(get_gate)):
    """
    Force a verification round trip with the license server.

    If the server is unreachable the last known result is returned.
    """
    return await gate.get_status(force_refresh=True)

@app.post("/api/license/activate", response_model=ActivationOutcome)
async def activate_license(
    request: LicenseActivationRequest,
    gate: EntitlementGate = Depends(get_gate),
    store: LicenseStore = Depends(get_store)
):
    """
    Activate a license with the license server.

    On success the domain and key are saved to config.json and the
    verification cache is cleared so the next check sees the new tier.
    """
    outcome = await gate.activate(request.domain, request.licenseKey)

    if not outcome.success:
        raise HTTPException(status_code=400, detail=outcome.message)

    try:
        store.save_license(request.domain, request.licenseKey)
    except OSError as e:
        logger.error("Could not save license configuration: %s", e)
        raise HTTPException(status_code=500, detail="License activated but could not be saved")

    gate.invalidate()
    return outcome

@app.put("/api/license/config", response_model=DisplayStatus)
async def update_license_config(
    request: LicenseConfigUpdateRequest,
    gate: EntitlementGate = Depends(get_gate),
    store: LicenseStore = Depends(get_store)
):
    """
    Save a domain and license key without activating, then re-verify.
    """
    try:
        store.save_license(request.domain, request.licenseKey)
    except OSError as e:
        logger.error("Could not save license configuration: %s", e)
        raise HTTPException(status_code=500, detail="Could not save license configuration")

    gate.invalidate()
    return await gate.get_display_status()

@app.post("/api/license/feature/check", response_model=FeatureCheckResponse)
async def check_feature(
    request: FeatureCheckRequest,
    gate: EntitlementGate = Depends(get_gate)
):
    """
    Check if a feature is available based on license.

    Lifetime and Enterprise licenses unlock everything; Pro features
    need at least a Pro license.
    """
    decision = await gate.check_feature(request.featureKey)
    return {"featureKey": request.featureKey, "allowed": decision.allowed, "reason": decision.reason}

@app.get("/api/license/attempts", response_model=List[ValidationAttemptResponse])
def list_validation_attempts(
    limit: int = Query(20, ge=1, le=200),
    attempt_log: AttemptLog = Depends(get_attempt_log)
):
    """
    Recent verification attempts, newest first.

    Tells network outages (offline) apart from license server errors (failed).
    """
    return [
        {
            "domain": attempt.domain,
            "result": attempt.result,
            "errorMessage": attempt.error_message,
            "attemptedAt": attempt.attempted_at
        }
        for attempt in attempt_log.recent(limit)
    ]

@app.get("/health", response_model=HealthCheckResponse)
async def health_check(store: LicenseStore = Depends(get_store)):
    """
    Health check endpoint for container orchestration.
    """
    return {
        "status": "healthy",
        "service": "license-client",
        "version": settings.APP_VERSION,
        "authority": store.resolve_authority_address()
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
