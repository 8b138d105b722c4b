from gpukube.resolvers.base import ContainerDeviceResolver

__all__ = ["ContainerDeviceResolver"]
