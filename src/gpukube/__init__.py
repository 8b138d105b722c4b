# src/gpukube/__init__.py
"""GPUKube: per-container GPU metrics exporter for Kubernetes nodes."""

__version__ = "0.1.0"
