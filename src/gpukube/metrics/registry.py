# src/gpukube/metrics/registry.py
"""
The Prometheus gauge families published by GPUKube.

A MetricsRegistry owns its own CollectorRegistry instead of registering into
the process-wide default one, so several servers (or tests) can coexist.

Concurrency contract: every method may be called from any thread while the
registry is being scraped. prometheus_client guards each gauge family and
each child with its own lock, so a scrape observes every individual value
either before or after a write, never torn. A scrape running concurrently
with `reset()` may observe some families already cleared and others not.
"""

import logging
from typing import Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from gpukube.models.metrics import ContainerID, DeviceSample

logger = logging.getLogger(__name__)

DEVICE_LABELS = ("namespace", "pod", "container", "make", "accelerator_id", "model")
REQUEST_LABELS = ("namespace", "pod", "container", "resource_name")

GPU_MAKE = "nvidia"


class MetricsRegistry:
    """
    Holds the duty_cycle, memory_total, memory_used and request gauge families.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        # Percent of time when the GPU was actively processing.
        self.duty_cycle = Gauge(
            "duty_cycle",
            "Percent of time when the GPU was actively processing",
            labelnames=DEVICE_LABELS,
            registry=self.registry,
        )
        # Total memory available on the GPU, in bytes.
        self.memory_total = Gauge(
            "memory_total",
            "Total memory available on the GPU in bytes",
            labelnames=DEVICE_LABELS,
            registry=self.registry,
        )
        # GPU memory allocated, in bytes.
        self.memory_used = Gauge(
            "memory_used",
            "Allocated GPU memory in bytes",
            labelnames=DEVICE_LABELS,
            registry=self.registry,
        )
        # Number of GPU devices requested by the container.
        self.accelerator_requests = Gauge(
            "request",
            "Number of accelerator devices requested by the container",
            labelnames=REQUEST_LABELS,
            registry=self.registry,
        )

    @property
    def families(self) -> Tuple[Gauge, ...]:
        return (self.accelerator_requests, self.duty_cycle, self.memory_total, self.memory_used)

    def set_request(self, container: ContainerID, resource_name: str, count: int) -> None:
        self.accelerator_requests.labels(container.namespace, container.pod, container.container, resource_name).set(
            count
        )

    def set_device_sample(self, container: ContainerID, sample: DeviceSample) -> None:
        """Publishes the three per-device gauges; memory values are written in bytes."""
        labels = (container.namespace, container.pod, container.container, GPU_MAKE, sample.uuid, sample.model)
        self.duty_cycle.labels(*labels).set(sample.duty_cycle)
        self.memory_total.labels(*labels).set(sample.memory_total_bytes)
        self.memory_used.labels(*labels).set(sample.memory_used_bytes)

    def reset(self) -> None:
        """Drops every label combination from all four families."""
        for family in self.families:
            family.clear()
        logger.debug("Cleared all GPU metric label sets.")

    def series(self, name: str) -> Dict[Tuple[str, ...], float]:
        """
        Returns the current time series of one family, keyed by the label
        values in declaration order.
        """
        result: Dict[Tuple[str, ...], float] = {}
        for metric in self.registry.collect():
            if metric.name != name:
                continue
            for sample in metric.samples:
                key = tuple(sample.labels[label] for label in _labelnames_for(name))
                result[key] = sample.value
        return result

    def exposition(self) -> bytes:
        """Renders the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)


def _labelnames_for(name: str) -> Tuple[str, ...]:
    return REQUEST_LABELS if name == "request" else DEVICE_LABELS
