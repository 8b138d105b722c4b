from gpukube.devices.base import DeviceStatusProvider

__all__ = ["DeviceStatusProvider"]
