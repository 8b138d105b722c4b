# src/gpukube/cli/main.py
"""
Console entry point: `gpukube start` runs the exporter, `gpukube version`
reports the installed release.
"""

import logging

import typer

from .. import __version__
from ..core.config import config
from . import start

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

app = typer.Typer(
    name="gpukube",
    help="Export per-container GPU utilization and memory metrics for Prometheus.",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(start.app, name="start")


@app.command()
def version():
    """Show the installed GPUKube version."""
    typer.echo(f"GPUKube version: {__version__}")
