"""
Shared fixtures for the license client tests.

The license server is replaced by an httpx.MockTransport so that no test
touches the network. Time comes from a manual clock.
"""

import json

import httpx
import pytest

from entitlements import EntitlementGate
from license_cache import VerificationCache
from license_client import LicenseClient
from license_store import LicenseStore

AUTHORITY = "https://authority.test"


class FakeAuthority:
    """Scriptable stand-in for the license server."""

    def __init__(self):
        self.requests = []
        self.verify_response = {
            "valid": True,
            "message": "License valid",
            "license": {
                "type": "pro",
                "maxUsers": 10,
                "expiresAt": "2030-01-01T00:00:00Z",
                "customerName": "Acme",
            },
        }
        self.verify_status = 200
        self.activate_response = {
            "success": True,
            "message": "Activated",
            "license": {"type": "lifetime", "maxUsers": 100, "expiresAt": None},
        }
        self.activate_status = 200
        self.error = None  # exception class raised instead of answering

    @property
    def verify_calls(self):
        return [r for r in self.requests if r.url.path == "/api/verify"]

    @property
    def activate_calls(self):
        return [r for r in self.requests if r.url.path == "/api/activate"]

    def set_tier(self, tier):
        self.verify_response = {
            "valid": True,
            "message": "License valid",
            "license": {"type": tier, "maxUsers": 5, "expiresAt": None},
        }

    def go_offline(self):
        self.error = httpx.ConnectError

    def come_online(self):
        self.error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("authority unreachable", request=request)
        if request.url.path == "/api/verify":
            return httpx.Response(self.verify_status, json=self.verify_response)
        if request.url.path == "/api/activate":
            return httpx.Response(self.activate_status, json=self.activate_response)
        return httpx.Response(404, json={"message": "not found"})


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingAttemptLog:
    def __init__(self):
        self.entries = []

    def record(self, license_key, domain, result, error_message=None):
        self.entries.append((license_key, domain, result, error_message))


def write_config(path, document):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")


@pytest.fixture()
def config_file(tmp_path):
    return tmp_path / "data" / "config.json"


@pytest.fixture()
def configured(config_file):
    write_config(config_file, {"license": {"domain": "x.com", "licenseKey": "K"}})
    return config_file


@pytest.fixture()
def store(config_file):
    return LicenseStore(config_file, server_override=AUTHORITY)


@pytest.fixture()
def authority():
    return FakeAuthority()


@pytest.fixture()
def client(store, authority):
    return LicenseClient(store, timeout=10, transport=httpx.MockTransport(authority.handler))


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def attempt_log():
    return RecordingAttemptLog()


@pytest.fixture()
def cache(client, store, clock, attempt_log):
    return VerificationCache(client, store, refresh_interval=3600, attempt_log=attempt_log, clock=clock)


@pytest.fixture()
def gate(cache, store, client):
    return EntitlementGate(cache, store, client)
