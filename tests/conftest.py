# tests/conftest.py

import time
from typing import Dict, Iterable, Optional

import pytest

from gpukube.core.exceptions import DeviceQueryError
from gpukube.devices.base import DeviceStatusProvider
from gpukube.metrics.registry import MetricsRegistry
from gpukube.models.metrics import ContainerDeviceMap, DeviceStatus
from gpukube.resolvers.base import ContainerDeviceResolver


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDeviceProvider(DeviceStatusProvider):
    """
    In-memory driver binding. Device names map to statuses; lookups of names
    listed in `failing_devices` and duty cycles of UUIDs listed in
    `failing_duty_cycles` raise DeviceQueryError.
    """

    def __init__(
        self,
        statuses: Optional[Dict[str, DeviceStatus]] = None,
        duty_cycles: Optional[Dict[str, float]] = None,
        failing_devices: Iterable[str] = (),
        failing_duty_cycles: Iterable[str] = (),
        status_delay: float = 0.0,
    ):
        self.statuses = statuses or {}
        self.duty_cycles = duty_cycles or {}
        self.failing_devices = set(failing_devices)
        self.failing_duty_cycles = set(failing_duty_cycles)
        self.status_delay = status_delay
        self.driver_error: Optional[Exception] = None
        self.discovery_error: Optional[Exception] = None
        self.duty_cycle_calls = []
        self.shutdown_called = False

    def get_driver_version(self) -> str:
        if self.driver_error:
            raise self.driver_error
        return "550.54.15"

    def discover_devices(self):
        if self.discovery_error:
            raise self.discovery_error
        return sorted(self.statuses)

    def device_from_name(self, name: str) -> str:
        if name in self.failing_devices or name not in self.statuses:
            raise DeviceQueryError(f"device {name} was not found during discovery")
        return name

    def get_status(self, device: str) -> DeviceStatus:
        if self.status_delay:
            time.sleep(self.status_delay)
        return self.statuses[device]

    def average_utilization(self, uuid: str, window_seconds: float) -> float:
        self.duty_cycle_calls.append((uuid, window_seconds))
        if uuid in self.failing_duty_cycles or uuid not in self.duty_cycles:
            raise DeviceQueryError(f"no utilization samples for {uuid}")
        return self.duty_cycles[uuid]

    def shutdown(self) -> None:
        self.shutdown_called = True


class FakeResolver(ContainerDeviceResolver):
    """Returns a fixed mapping, or raises when `error` is set."""

    def __init__(self, mapping: Optional[ContainerDeviceMap] = None):
        self.mapping = mapping or {}
        self.error: Optional[Exception] = None
        self.calls = 0
        self.on_resolve = None
        self.closed = False

    async def get_devices_for_all_containers(self) -> ContainerDeviceMap:
        self.calls += 1
        if self.on_resolve is not None:
            self.on_resolve()
        if self.error:
            raise self.error
        return dict(self.mapping)

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Keeps configuration predictable and isolated from the actual environment.
    """
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("NODE_NAME", "gpu-node-1")
    monkeypatch.delenv("DEVICE_QUERY_TIMEOUT", raising=False)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def registry():
    return MetricsRegistry()


@pytest.fixture
def fake_provider():
    return FakeDeviceProvider(
        statuses={
            "nvidia0": DeviceStatus(uuid="GPU-aaaa", model="X100", memory_total_mib=1000, memory_used_mib=100),
            "nvidia1": DeviceStatus(uuid="GPU-bbbb", model="X100", memory_total_mib=2000, memory_used_mib=500),
        },
        duty_cycles={"GPU-aaaa": 42, "GPU-bbbb": 7},
    )


@pytest.fixture
def fake_resolver():
    return FakeResolver()
