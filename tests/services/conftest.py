"""Fixtures for service tests.

Fixtures use function scope; every test gets fresh stores and links.
"""

from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest

from notizen.config import Config, StoreConfig, SyncConfig
from notizen.core.storage import InMemoryBlobStore
from notizen.core.transport import LoopbackLink
from notizen.models import BatteryState, ChargingState
from notizen.services import DeviceContext, LocalStore, SyncCoordinator


@pytest.fixture
def make_store(clock):
    """Build a LocalStore for a device id."""

    def _make(device_id: str = "phone", **config) -> LocalStore:
        return LocalStore(device_id=device_id, config=StoreConfig(**config), clock=clock)

    return _make


@pytest.fixture
def battery_state(base_time):
    def _make(level: float, minutes: float = 0) -> BatteryState:
        return BatteryState(
            level=level,
            charging_state=ChargingState.UNPLUGGED,
            seconds_remaining=level * 36000,
            updated_at=base_time + timedelta(minutes=minutes),
        )

    return _make


@pytest.fixture
def sync_pair(make_store):
    """Phone and watch coordinators joined by a loopback link (not yet started)."""

    def _make(reachable: bool = True, paired: bool = True):
        link = LoopbackLink(paired=paired, reachable=reachable)
        phone = SyncCoordinator(make_store("phone"), link.a, SyncConfig(device_id="phone"))
        watch = SyncCoordinator(make_store("watch"), link.b, SyncConfig(device_id="watch"))
        return link, phone, watch

    return _make


@pytest.fixture
def make_device(clock):
    """Build a DeviceContext with default config on one side of a link."""

    def _make(device_id: str, transport, blob_store=None) -> DeviceContext:
        config = Config()
        config.sync.device_id = device_id
        return DeviceContext(config, transport, blob_store or InMemoryBlobStore(), clock)

    return _make


@pytest.fixture
async def devices(make_device) -> AsyncGenerator[tuple[LoopbackLink, DeviceContext, DeviceContext], None]:
    """Started phone and watch contexts on a reachable link."""
    link = LoopbackLink(reachable=True)
    phone = make_device("phone", link.a)
    watch = make_device("watch", link.b)
    await phone.start()
    await watch.start()
    try:
        yield link, phone, watch
    finally:
        await phone.stop()
        await watch.stop()
