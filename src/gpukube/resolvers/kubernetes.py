# src/gpukube/resolvers/kubernetes.py
"""
Resolves container to GPU assignments from the Kubernetes API.

Pods scheduled on this node are listed and every container that requests the
GPU resource is mapped to the devices named in its NVIDIA_VISIBLE_DEVICES
environment variable. Numeric entries are NVML indices and are turned into
'/dev/nvidiaN' style names; other entries (GPU UUIDs) are used as-is.
"""

import asyncio
import logging
from typing import List, Optional

from kubernetes_asyncio import client
from kubernetes_asyncio import config as kube_config

from gpukube.core.exceptions import ContainerResolutionError
from gpukube.models.metrics import ContainerDeviceMap, ContainerID
from gpukube.resolvers.base import ContainerDeviceResolver

logger = logging.getLogger(__name__)

VISIBLE_DEVICES_ENV = "NVIDIA_VISIBLE_DEVICES"

# Values of NVIDIA_VISIBLE_DEVICES that do not name specific devices.
_NON_SPECIFIC_VALUES = {"", "all", "none", "void"}

_CONFIG_LOCK = asyncio.Lock()
_config_loaded = False


async def get_core_v1_api() -> Optional[client.CoreV1Api]:
    """
    Returns a CoreV1Api client, loading the in-cluster configuration (the
    exporter normally runs as a DaemonSet) or, failing that, the local
    kubeconfig. Returns None when neither is available.
    """
    global _config_loaded

    async with _CONFIG_LOCK:
        if not _config_loaded:
            try:
                kube_config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration.")
                _config_loaded = True
            except kube_config.ConfigException:
                logger.debug("In-cluster config not found, trying kubeconfig.")

        if not _config_loaded:
            try:
                await kube_config.load_kube_config()
                logger.info("Loaded Kubernetes configuration from kubeconfig file.")
                _config_loaded = True
            except (kube_config.ConfigException, OSError) as e:
                logger.warning(f"Failed to load any Kubernetes configuration: {e}")
                return None

    return client.CoreV1Api()


def parse_visible_devices(value: Optional[str]) -> List[str]:
    """
    Turns an NVIDIA_VISIBLE_DEVICES value into device identifiers: NVML indices
    (e.g. '0') or UUIDs, both understood by the device provider.
    """
    if value is None or value.strip().lower() in _NON_SPECIFIC_VALUES:
        return []

    devices = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        devices.append(entry)
    return devices


class KubernetesDeviceResolver(ContainerDeviceResolver):
    """
    Builds the container device map from the pods running on one node.
    """

    def __init__(self, node_name: Optional[str] = None, resource_name: str = "nvidia.com/gpu"):
        self.node_name = node_name
        self.resource_name = resource_name
        self._api = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        if not self._api:
            logger.warning("KubernetesDeviceResolver could not initialize Kubernetes client.")
        return self._api

    def _requests_gpu(self, container) -> bool:
        resources = container.resources
        if resources is None:
            return False
        limits = resources.limits or {}
        requests = resources.requests or {}
        return self.resource_name in limits or self.resource_name in requests

    async def get_devices_for_all_containers(self) -> ContainerDeviceMap:
        api = await self._ensure_client()
        if not api:
            raise ContainerResolutionError("Kubernetes client is not configured")

        field_selector = "status.phase=Running"
        if self.node_name:
            field_selector = f"spec.nodeName={self.node_name},{field_selector}"

        try:
            pod_list = await api.list_pod_for_all_namespaces(field_selector=field_selector, watch=False)
        except Exception as e:
            raise ContainerResolutionError(f"failed to list pods: {e}") from e

        container_devices: ContainerDeviceMap = {}
        for pod in pod_list.items:
            if not pod.spec or not pod.spec.containers:
                continue

            for container in pod.spec.containers:
                if not self._requests_gpu(container):
                    continue

                env = {var.name: var.value for var in (container.env or [])}
                devices = parse_visible_devices(env.get(VISIBLE_DEVICES_ENV))
                if not devices:
                    logger.debug(
                        f"Container {pod.metadata.namespace}/{pod.metadata.name}/{container.name} "
                        f"requests {self.resource_name} but names no specific devices; skipping."
                    )
                    continue

                key = ContainerID(namespace=pod.metadata.namespace, pod=pod.metadata.name, container=container.name)
                container_devices[key] = devices

        logger.debug(f"Resolved devices for {len(container_devices)} container(s).")
        return container_devices

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("KubernetesDeviceResolver Kubernetes client closed.")
            self._api = None
