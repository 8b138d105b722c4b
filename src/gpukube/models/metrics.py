# src/gpukube/models/metrics.py
"""
Pydantic data models shared by the collectors, the metric server and the
registry. Device samples are built fresh on every collection pass and are
never cached between passes.
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

BYTES_PER_MIB = 1024 * 1024


class ContainerID(BaseModel):
    """
    Identifies a running container. Immutable and hashable so it can be used
    as a mapping key.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., description="The namespace the pod belongs to.")
    pod: str = Field(..., description="The name of the Kubernetes pod.")
    container: str = Field(..., description="The name of the container within the pod.")


class DeviceStatus(BaseModel):
    """Point-in-time status snapshot of one accelerator device."""

    uuid: str = Field(..., description="The device UUID reported by the driver.")
    model: str = Field(..., description="The device model name.")
    memory_total_mib: int = Field(..., ge=0, description="Total device memory in MiB.")
    memory_used_mib: int = Field(..., ge=0, description="Allocated device memory in MiB.")


class DeviceSample(BaseModel):
    """
    The values published for one device in one collection pass.
    """

    uuid: str
    model: str
    memory_total_mib: int = Field(..., ge=0)
    memory_used_mib: int = Field(..., ge=0)
    duty_cycle: float = Field(..., ge=0, le=100, description="Percent of the trailing window the device was busy.")

    @classmethod
    def from_status(cls, status: DeviceStatus, duty_cycle: float) -> "DeviceSample":
        return cls(
            uuid=status.uuid,
            model=status.model,
            memory_total_mib=status.memory_total_mib,
            memory_used_mib=status.memory_used_mib,
            duty_cycle=duty_cycle,
        )

    @property
    def memory_total_bytes(self) -> int:
        return self.memory_total_mib * BYTES_PER_MIB

    @property
    def memory_used_bytes(self) -> int:
        return self.memory_used_mib * BYTES_PER_MIB


# Container to ordered device identifiers; rebuilt from scratch on every pass.
ContainerDeviceMap = Dict[ContainerID, List[str]]
