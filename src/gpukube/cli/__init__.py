# src/gpukube/cli/__init__.py
"""
GPUKube CLI Package

Exposes the top-level Typer `app` for the console entrypoint.
"""

from .main import app

__all__ = ["app"]
