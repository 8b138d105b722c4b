# src/gpukube/cli/start.py
"""
Start command for the GPUKube CLI.

Builds the metric server from configuration, starts it and keeps the event
loop alive until SIGTERM or SIGINT is received.
"""

import asyncio
import logging
import signal
import traceback
from typing import Optional

import typer
from typing_extensions import Annotated

from ..core.config import config
from ..core.exceptions import GpuKubeError
from ..core.metric_server import MetricServer

logger = logging.getLogger(__name__)

app = typer.Typer(name="start", help="Start the GPUKube metrics exporter.")


def build_metric_server(
    interval_ms: Optional[int] = None, port: Optional[int] = None, metrics_path: Optional[str] = None
) -> MetricServer:
    """Creates a MetricServer from the configuration, with CLI overrides applied."""
    from ..devices.nvml import NvmlDeviceProvider
    from ..resolvers.kubernetes import KubernetesDeviceResolver

    return MetricServer(
        interval_ms if interval_ms is not None else config.COLLECTION_INTERVAL_MS,
        port if port is not None else config.METRICS_PORT,
        metrics_path or config.METRICS_PATH,
        device_provider=NvmlDeviceProvider(),
        resolver=KubernetesDeviceResolver(node_name=config.NODE_NAME, resource_name=config.GPU_RESOURCE_NAME),
        host=config.METRICS_HOST,
        reset_interval_seconds=config.reset_interval_seconds,
        duty_cycle_window_seconds=config.duty_cycle_window_seconds,
        resource_name=config.GPU_RESOURCE_NAME,
        device_query_timeout=config.device_query_timeout_seconds,
    )


async def _async_start(server: MetricServer) -> None:
    """Runs the metric server until a shutdown signal arrives."""
    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        """Handle SIGTERM and SIGINT for graceful shutdown."""
        sig_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        shutdown_requested.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        await server.start()
        logger.info("GPUKube is running. Press CTRL+C to exit.")
        await shutdown_requested.wait()
    finally:
        await server.stop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(signum)


@app.callback(invoke_without_command=True)
def start(
    ctx: typer.Context,
    interval_ms: Annotated[
        Optional[int],
        typer.Option("--interval-ms", min=1, help="Collection interval in milliseconds."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", min=1, max=65535, help="Port serving the metrics endpoint."),
    ] = None,
    metrics_path: Annotated[
        Optional[str],
        typer.Option("--metrics-path", help="URL path of the metrics endpoint."),
    ] = None,
) -> None:
    """
    Start collecting GPU metrics and serving them to Prometheus.
    """
    if ctx.invoked_subcommand is not None:
        return

    logger.info("Initializing GPUKube...")
    try:
        server = build_metric_server(interval_ms, port, metrics_path)
        asyncio.run(_async_start(server))
        logger.info("GPUKube stopped gracefully.")
    except GpuKubeError as e:
        logger.error(f"Failed to start GPUKube: {e}")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("Shutting down GPUKube.")
        raise typer.Exit()
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")
        logger.error("Startup failed: %s", traceback.format_exc())
        raise typer.Exit(code=1)
