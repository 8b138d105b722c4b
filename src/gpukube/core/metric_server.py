# src/gpukube/core/metric_server.py
"""
The metric server periodically samples every GPU assigned to a running
container on this host and publishes duty cycle, memory and request gauges.

Label sets of containers that went away are not tracked individually: the
whole registry is cleared once per reset interval and repopulated by the next
pass, which bounds cardinality at the cost of a brief gap in the series.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from gpukube.api.app import create_app, create_server
from gpukube.core.exceptions import DeviceDiscoveryError, DriverError
from gpukube.core.scheduler import Scheduler
from gpukube.devices.base import DeviceStatusProvider
from gpukube.metrics.registry import MetricsRegistry
from gpukube.models.metrics import ContainerDeviceMap, ContainerID, DeviceSample
from gpukube.resolvers.base import ContainerDeviceResolver

logger = logging.getLogger(__name__)

METRICS_RESET_INTERVAL_SECONDS = 60.0
DUTY_CYCLE_WINDOW_SECONDS = 10.0
GPU_RESOURCE_NAME = "nvidia.com/gpu"


class MetricServer:
    """
    Exposes GPU metrics for all containers in Prometheus format on the given port.

    The device provider and the container resolver are always injected, see
    `gpukube.cli.start.build_metric_server` for the production wiring.
    """

    def __init__(
        self,
        collection_interval_ms: int,
        port: int,
        metrics_path: str,
        *,
        device_provider: DeviceStatusProvider,
        resolver: ContainerDeviceResolver,
        registry: Optional[MetricsRegistry] = None,
        host: str = "0.0.0.0",
        reset_interval_seconds: float = METRICS_RESET_INTERVAL_SECONDS,
        duty_cycle_window_seconds: float = DUTY_CYCLE_WINDOW_SECONDS,
        resource_name: str = GPU_RESOURCE_NAME,
        device_query_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.collection_interval_ms = collection_interval_ms
        self.port = port
        self.host = host
        self.metrics_path = metrics_path
        self.registry = registry if registry is not None else MetricsRegistry()
        self.device_provider = device_provider
        self.resolver = resolver
        self.reset_interval_seconds = reset_interval_seconds
        self.duty_cycle_window_seconds = duty_cycle_window_seconds
        self.resource_name = resource_name
        self.device_query_timeout = device_query_timeout
        self._clock = clock
        self.last_metrics_reset_time = clock()

        self._scheduler: Optional[Scheduler] = None
        self._server = None
        self._server_task: Optional[asyncio.Task] = None

    @property
    def collection_interval_seconds(self) -> float:
        return self.collection_interval_ms / 1000.0

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    async def start(self) -> None:
        """
        Initializes the driver, discovers devices, then launches the exposition
        server and the collection loop on the running event loop.

        Raises:
            DriverError: If the driver cannot be queried.
            DeviceDiscoveryError: If device discovery fails.
        """
        logger.info("Starting metrics server")

        try:
            driver_version = await asyncio.to_thread(self.device_provider.get_driver_version)
        except DriverError:
            raise
        except Exception as e:
            raise DriverError(f"failed to query driver: {e}") from e
        logger.info(f"Driver initialized successfully. Driver version: {driver_version}")

        try:
            await asyncio.to_thread(self.device_provider.discover_devices)
        except DeviceDiscoveryError:
            raise
        except Exception as e:
            raise DeviceDiscoveryError(f"failed to discover GPU devices: {e}") from e

        app = create_app(self.registry, self.metrics_path)
        self._server = create_server(app, self.host, self.port)
        self._server_task = asyncio.create_task(self._serve())

        self._scheduler = Scheduler()
        self._scheduler.add_job(self.run_collection_pass, self.collection_interval_seconds)
        logger.info(
            f"Serving metrics on {self.host}:{self.port}{self.metrics_path}, "
            f"collecting every {self.collection_interval_ms}ms."
        )

    async def _serve(self) -> None:
        try:
            await self._server.serve()
        except asyncio.CancelledError:
            raise
        except (Exception, SystemExit) as e:
            # uvicorn exits with SystemExit when it cannot bind.
            logger.error(f"Failed to start metric server: {e!r}")

    async def stop(self) -> None:
        """
        Cancels the collection loop, shuts the exposition server down and
        releases collaborators. Safe to call on a server that never started.
        """
        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None

        if self._server_task is not None:
            self._server.should_exit = True
            try:
                await asyncio.wait_for(self._server_task, timeout=5)
            except asyncio.TimeoutError:
                logger.warning("Metric server did not shut down in time; cancelling.")
            self._server_task = None
            self._server = None

        await self.resolver.close()
        self.device_provider.shutdown()
        logger.info("Metrics server stopped.")

    async def run_collection_pass(self) -> None:
        """One tick: reset check, resolve containers, publish every device."""
        self.reset_metrics_if_needed()

        try:
            container_devices = await self.resolver.get_devices_for_all_containers()
        except Exception as e:
            logger.error(f"Failed to get devices for containers: {e}")
            return

        await self.update_metrics(container_devices)

    def reset_metrics_if_needed(self) -> bool:
        """Clears all four gauge families once the reset interval has elapsed."""
        now = self._clock()
        if now <= self.last_metrics_reset_time + self.reset_interval_seconds:
            return False

        self.registry.reset()
        self.last_metrics_reset_time = now
        logger.debug("Reset GPU metrics to evict stale label sets.")
        return True

    async def update_metrics(self, container_devices: ContainerDeviceMap) -> None:
        for container, devices in container_devices.items():
            self.registry.set_request(container, self.resource_name, len(devices))

            for device in devices:
                sample = await self._collect_device(container, device)
                if sample is not None:
                    self.registry.set_device_sample(container, sample)

    async def _collect_device(self, container: ContainerID, device: str) -> Optional[DeviceSample]:
        """
        Gathers status and duty cycle for one device. Returns None, after
        logging, when either query fails.
        """
        try:
            handle = await self._query(self.device_provider.device_from_name, device)
            status = await self._query(self.device_provider.get_status, handle)
        except Exception as e:
            logger.error(f"Failed to get device status for {device} ({container.namespace}/{container.pod}): {e!r}")
            return None

        try:
            duty_cycle = await self._query(
                self.device_provider.average_utilization, status.uuid, self.duty_cycle_window_seconds
            )
        except Exception as e:
            logger.info(f"Error calculating duty cycle for device {device}: {e!r}. Skipping this device")
            return None

        try:
            return DeviceSample.from_status(status, duty_cycle)
        except ValidationError as e:
            logger.warning(f"Invalid sample for device {device} ({status.uuid}): {e}. Skipping this device")
            return None

    async def _query(self, func: Callable[..., Any], *args: Any) -> Any:
        call = asyncio.to_thread(func, *args)
        if self.device_query_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.device_query_timeout)
