"""Shared pytest fixtures for the captive core tests."""

import pytest

from captive.core.config import CaptiveSettings
from captive.core.portal import CaptivePortal, PortalDirectory
from captive.session import (
    ActivityMonitor,
    AdmissionController,
    AuditLog,
    SessionStore,
    TeardownController,
)
from tests.fixtures.firewall import FakeClock, RecordingWorkerClient


@pytest.fixture
def settings():
    """Fast timeouts and backoff so worker tests stay quick."""
    return CaptiveSettings(
        WORKER_TIMEOUT=0.5,
        REVOKE_MAX_ATTEMPTS=3,
        REVOKE_BACKOFF_SECONDS=0.01,
        REVOKE_BACKOFF_MULTIPLIER=1.0,
    )


@pytest.fixture
def portals():
    return PortalDirectory([
        CaptivePortal(portal_id="lobby", interface="eth1", name="Lobby"),
        CaptivePortal(portal_id="cafe", interface="eth2"),
    ])


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def worker():
    return RecordingWorkerClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def admission(store, worker, portals, audit, clock):
    return AdmissionController(store, worker, portals, audit=audit, clock=clock)


@pytest.fixture
def monitor(store, worker, portals, audit, clock):
    return ActivityMonitor(store, worker, portals, audit=audit, clock=clock)


@pytest.fixture
def teardown(store, worker, portals, audit):
    return TeardownController(store, worker, portals, audit=audit)


@pytest.fixture
def make_request():
    """Build a valid admission request, overriding any field."""
    def _make(**overrides):
        request = {
            "portal_id": "lobby",
            "username": "alice",
            "password_token": "s3cr3t-token",
            "ip_address": "10.0.0.5",
            "mac_address": "aa:bb:cc:dd:ee:01",
            "is_radius_session": False,
        }
        request.update(overrides)
        return request
    return _make
