"""
Shared fixtures for attestation lifecycle tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from veritasor.attestation.anchor import InMemoryChainAnchor
from veritasor.attestation.business import Business, InMemoryBusinessDirectory
from veritasor.attestation.idempotency import IdempotencyGuard
from veritasor.attestation.manager import AttestationLifecycleManager
from veritasor.attestation.models import Caller
from veritasor.attestation.store import InMemoryAttestationStore
from veritasor.core.settings import (
    AnchorSettings,
    AttestationSettings,
    IdempotencySettings,
    RuntimeSettings,
    StoreSettings,
    VeritasorSettings,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2025, 10, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def tick(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def settings():
    return VeritasorSettings(
        anchor=AnchorSettings(mode="memory", timeout=0.2),
        idempotency=IdempotencySettings(ttl=3600),
        store=StoreSettings(path=None, sync=False),
        attestation=AttestationSettings(default_version="1.0.0", page_limit=20, max_page_limit=100),
        runtime=RuntimeSettings(log_level="DEBUG"),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def businesses():
    return InMemoryBusinessDirectory([
        Business(id="biz_1", user_id="user_1", name="Business 1", email="business1@example.com"),
        Business(id="biz_2", user_id="user_2", name="Business 2", email="business2@example.com"),
    ])


@pytest.fixture
def owner():
    return Caller(user_id="user_1")


@pytest.fixture
def other_owner():
    return Caller(user_id="user_2")


@pytest.fixture
def anchor():
    return InMemoryChainAnchor()


@pytest.fixture
def store():
    return InMemoryAttestationStore()


@pytest.fixture
def make_manager(settings, clock, businesses, anchor, store):
    """Build a manager; keyword overrides replace the default collaborators."""

    def _make(**overrides):
        kwargs = {
            "store": store,
            "anchor": anchor,
            "businesses": businesses,
            "settings": settings,
            "clock": clock,
            "guard": IdempotencyGuard(settings.idempotency.ttl),
        }
        kwargs.update(overrides)
        return AttestationLifecycleManager(
            kwargs.pop("store"),
            kwargs.pop("anchor"),
            kwargs.pop("businesses"),
            **kwargs,
        )

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()
