from gpukube.metrics.registry import DEVICE_LABELS, REQUEST_LABELS, MetricsRegistry

__all__ = ["DEVICE_LABELS", "REQUEST_LABELS", "MetricsRegistry"]
