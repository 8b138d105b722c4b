# src/gpukube/devices/nvml.py
"""
NVIDIA driver binding built on NVML (the `pynvml` module shipped by
nvidia-ml-py).
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List

import pynvml

from gpukube.core.exceptions import DeviceDiscoveryError, DeviceQueryError, DriverError
from gpukube.devices.base import DeviceStatusProvider
from gpukube.models.metrics import BYTES_PER_MIB, DeviceStatus

logger = logging.getLogger(__name__)

# Which member of the nvmlValue_t union holds a sample, by NVML value type.
_SAMPLE_VALUE_FIELDS = {
    pynvml.NVML_VALUE_TYPE_DOUBLE: "dVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_INT: "uiVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_LONG: "ulVal",
    pynvml.NVML_VALUE_TYPE_UNSIGNED_LONG_LONG: "ullVal",
    pynvml.NVML_VALUE_TYPE_SIGNED_LONG_LONG: "sllVal",
}


def _to_str(value: Any) -> str:
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)


@dataclass(frozen=True)
class NvmlDevice:
    """A discovered device: its /dev name, UUID and NVML handle."""

    name: str
    uuid: str
    handle: Any


class NvmlDeviceProvider(DeviceStatusProvider):
    """
    Looks devices up by their /dev node name (e.g. 'nvidia0', derived from the
    NVML minor number), by their NVML index (e.g. '0') or by UUID.
    """

    def __init__(self):
        self._devices: Dict[str, NvmlDevice] = {}
        self._lock = threading.Lock()
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            try:
                pynvml.nvmlInit()
            except pynvml.NVMLError as e:
                raise DriverError(f"failed to initialize NVML: {e}") from e
            self._initialized = True
            logger.info("NVML initialized.")

    def get_driver_version(self) -> str:
        self._ensure_initialized()
        try:
            return _to_str(pynvml.nvmlSystemGetDriverVersion())
        except pynvml.NVMLError as e:
            raise DriverError(f"failed to query NVML driver version: {e}") from e

    def discover_devices(self) -> List[str]:
        self._ensure_initialized()
        devices: Dict[str, NvmlDevice] = {}
        try:
            count = pynvml.nvmlDeviceGetCount()
            for index in range(count):
                handle = pynvml.nvmlDeviceGetHandleByIndex(index)
                minor = pynvml.nvmlDeviceGetMinorNumber(handle)
                device = NvmlDevice(name=f"nvidia{minor}", uuid=_to_str(pynvml.nvmlDeviceGetUUID(handle)), handle=handle)
                devices[device.name] = device
                devices[device.uuid] = device
                # NVML index, as used by NVIDIA_VISIBLE_DEVICES; may differ from the minor number.
                devices[str(index)] = device
        except pynvml.NVMLError as e:
            raise DeviceDiscoveryError(f"failed to enumerate GPU devices: {e}") from e

        with self._lock:
            self._devices = devices

        names = sorted({device.name for device in devices.values()})
        if not names:
            logger.warning("NVML reported no GPU devices on this host.")
        else:
            logger.info(f"Discovered {len(names)} GPU device(s): {', '.join(names)}")
        return names

    def device_from_name(self, name: str) -> NvmlDevice:
        with self._lock:
            device = self._devices.get(name)
        if device is None:
            raise DeviceQueryError(f"device {name} was not found during discovery")
        return device

    def get_status(self, device: NvmlDevice) -> DeviceStatus:
        try:
            model = _to_str(pynvml.nvmlDeviceGetName(device.handle))
            memory = pynvml.nvmlDeviceGetMemoryInfo(device.handle)
        except pynvml.NVMLError as e:
            raise DeviceQueryError(f"failed to read status of {device.name}: {e}") from e

        return DeviceStatus(
            uuid=device.uuid,
            model=model,
            memory_total_mib=memory.total // BYTES_PER_MIB,
            memory_used_mib=memory.used // BYTES_PER_MIB,
        )

    def average_utilization(self, uuid: str, window_seconds: float) -> float:
        since_us = int((time.time() - window_seconds) * 1_000_000)
        try:
            handle = self.device_from_name(uuid).handle
        except DeviceQueryError:
            try:
                handle = pynvml.nvmlDeviceGetHandleByUUID(uuid)
            except pynvml.NVMLError as e:
                raise DeviceQueryError(f"unknown device {uuid}: {e}") from e

        try:
            value_type, samples = pynvml.nvmlDeviceGetSamples(handle, pynvml.NVML_GPU_UTILIZATION_SAMPLES, since_us)
        except pynvml.NVMLError as e:
            raise DeviceQueryError(f"failed to read utilization samples for {uuid}: {e}") from e

        field = _SAMPLE_VALUE_FIELDS.get(value_type, "uiVal")
        values = [getattr(sample.sampleValue, field) for sample in samples if sample.timeStamp >= since_us]
        if not values:
            raise DeviceQueryError(f"no utilization samples for {uuid} in the last {window_seconds}s")
        return float(sum(values)) / len(values)

    def shutdown(self) -> None:
        with self._lock:
            if not self._initialized:
                return
            try:
                pynvml.nvmlShutdown()
            except pynvml.NVMLError as e:
                logger.warning(f"Failed to shut down NVML cleanly: {e}")
            self._initialized = False
            self._devices = {}
