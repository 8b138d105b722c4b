# tests/models/test_metrics_models.py

import pytest
from pydantic import ValidationError

from gpukube.models.metrics import ContainerID, DeviceSample, DeviceStatus


def test_container_id_is_a_structural_key():
    first = ContainerID(namespace="ml", pod="trainer-0", container="main")
    same = ContainerID(namespace="ml", pod="trainer-0", container="main")

    assert first == same
    assert {first: ["nvidia0"]}[same] == ["nvidia0"]


def test_container_id_is_immutable():
    container = ContainerID(namespace="ml", pod="trainer-0", container="main")

    with pytest.raises(ValidationError):
        container.pod = "trainer-1"


def test_device_sample_from_status_converts_memory():
    status = DeviceStatus(uuid="GPU-1", model="X100", memory_total_mib=1000, memory_used_mib=100)

    sample = DeviceSample.from_status(status, duty_cycle=42)

    assert sample.duty_cycle == 42.0
    assert sample.memory_total_bytes == 1048576000
    assert sample.memory_used_bytes == 104857600


def test_device_sample_rejects_out_of_range_duty_cycle():
    with pytest.raises(ValidationError):
        DeviceSample(uuid="GPU-1", model="X100", memory_total_mib=1, memory_used_mib=1, duty_cycle=101)
