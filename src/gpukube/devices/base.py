# src/gpukube/devices/base.py
"""
This module defines the abstract interface the metric server uses to talk to
the accelerator driver. Keeping it narrow lets tests inject a fake provider
instead of touching real hardware.
"""

from abc import ABC, abstractmethod
from typing import Any, List

from gpukube.models.metrics import DeviceStatus


class DeviceStatusProvider(ABC):
    """
    Abstract Base Class for accelerator driver bindings.

    All methods are blocking; the metric server calls them from a worker
    thread, one at a time.
    """

    @abstractmethod
    def get_driver_version(self) -> str:
        """
        Initializes the driver if needed and returns its version string.
        Raises DriverError when the driver is unavailable.
        """
        pass

    @abstractmethod
    def discover_devices(self) -> List[str]:
        """
        Enumerates the devices on this host and registers them for later
        lookups by name. Returns the registered device names.
        Raises DeviceDiscoveryError on failure.
        """
        pass

    @abstractmethod
    def device_from_name(self, name: str) -> Any:
        """
        Returns an opaque handle for a device identifier as reported by the
        container resolver. Raises DeviceQueryError when it is unknown.
        """
        pass

    @abstractmethod
    def get_status(self, device: Any) -> DeviceStatus:
        """Returns a point-in-time status snapshot for a device handle."""
        pass

    @abstractmethod
    def average_utilization(self, uuid: str, window_seconds: float) -> float:
        """
        Returns the average utilization percentage of a device over the
        trailing window ending now. Raises DeviceQueryError when no samples
        are available.
        """
        pass

    def shutdown(self) -> None:
        """
        Release driver resources.
        """
        pass
