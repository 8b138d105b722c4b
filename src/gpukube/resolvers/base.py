# src/gpukube/resolvers/base.py
"""
Abstract interface for discovering which devices each running container on
this host has been assigned.
"""

from abc import ABC, abstractmethod

from gpukube.models.metrics import ContainerDeviceMap


class ContainerDeviceResolver(ABC):
    """
    Abstract Base Class for container to device resolvers.
    """

    @abstractmethod
    async def get_devices_for_all_containers(self) -> ContainerDeviceMap:
        """
        Returns, for the current instant, every container that has devices
        assigned together with its ordered device identifiers.

        Raises:
            ContainerResolutionError: If the mapping cannot be built.
        """
        pass

    async def close(self):
        """
        Clean up resources (e.g., close API clients).
        """
        pass
