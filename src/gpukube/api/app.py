# src/gpukube/api/app.py
"""
FastAPI application factory for the metrics exposition endpoint.

The app is stateless: every scrape renders the registry it was created with.
"""

import logging

import uvicorn
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST

from gpukube import __version__
from gpukube.api.schemas import HealthResponse
from gpukube.metrics.registry import MetricsRegistry

logger = logging.getLogger(__name__)


def create_app(registry: MetricsRegistry, metrics_path: str = "/metrics") -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        registry: The registry to expose.
        metrics_path: URL path serving the Prometheus text format.

    Returns:
        A configured FastAPI application instance.
    """
    app = FastAPI(
        title="GPUKube",
        description="Per-container GPU metrics in the Prometheus exposition format.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )

    async def metrics() -> Response:
        return Response(content=registry.exposition(), media_type=CONTENT_TYPE_LATEST)

    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version=__version__)

    app.add_api_route(metrics_path, metrics, methods=["GET"], include_in_schema=False)
    app.add_api_route("/healthz", health, methods=["GET"], response_model=HealthResponse)

    return app


def create_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """Builds a uvicorn server that runs inside the caller's event loop."""
    server_config = uvicorn.Config(app, host=host, port=port, log_level="warning", lifespan="off")
    server = uvicorn.Server(server_config)
    # Signals are handled by the CLI, not by the embedded server.
    server.install_signal_handlers = lambda: None
    return server
