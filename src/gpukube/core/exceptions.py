class GpuKubeError(Exception):
    """Base exception for GPUKube."""

    pass


class DriverError(GpuKubeError):
    """Raised when the accelerator driver cannot be initialized or queried."""

    pass


class DeviceDiscoveryError(DriverError):
    """Raised when the devices on this host cannot be enumerated."""

    pass


class DeviceQueryError(GpuKubeError):
    """Raised when a single device lookup, status or utilization query fails."""

    pass


class ContainerResolutionError(GpuKubeError):
    """Raised when the container to device mapping cannot be built."""

    pass
