"""Shared test fixtures for sysdiag."""

import threading
import time
from queue import Empty, Queue

import pytest

from sysdiag.config import MonitorConfig
from sysdiag.models import DiskSample, HardwareFacts, ProcessSample, SystemSnapshot, Volume


def make_sample(
    name: str = "proc",
    cpu: float = 0.0,
    ram: float = 0.0,
    storage: float = 0.0,
) -> ProcessSample:
    """Create a ProcessSample for testing."""
    return ProcessSample(name=name, cpu_seconds=cpu, memory_mb=ram, storage_metric=storage)


def next_snapshot(queue: Queue, timeout: float = 2.0) -> SystemSnapshot:
    """Pull items off the queue until a SystemSnapshot arrives."""
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise Empty
        item = queue.get(timeout=remaining)
        if isinstance(item, SystemSnapshot):
            return item


class FakeProbe:
    """HardwareProbe returning fixed facts."""

    def __init__(self, facts: HardwareFacts | None = None) -> None:
        self.facts = facts or HardwareFacts(
            cpu_name="Test CPU",
            cpu_cores=4,
            total_memory_bytes=16 * 1024**3,
            gpu_name="Test GPU",
            gpu_vram_bytes=4 * 1024**3,
            os_caption="TestOS 1",
            os_version="1.0",
        )
        self.calls = 0

    def probe(self) -> HardwareFacts:
        self.calls += 1
        return self.facts


class FailingProbe:
    """HardwareProbe that is never allowed to answer."""

    def probe(self) -> HardwareFacts:
        raise PermissionError("sandboxed")


class FakeSampler:
    """ProcessSampler returning a fixed list, optionally slowly."""

    def __init__(self, samples: list[ProcessSample] | None = None, delay: float = 0.0) -> None:
        self.samples = samples if samples is not None else []
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def sample(self) -> list[ProcessSample]:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return list(self.samples)
        finally:
            with self._lock:
                self.active -= 1


class FakeBenchmark:
    """DiskBenchmark stand-in that reports a fixed speed without touching disk."""

    def __init__(self, speed: float = 100.0) -> None:
        self.speed = speed
        self.cancel_events: list[threading.Event | None] = []

    def sample_volumes(self, volumes, cancel=None) -> list[DiskSample]:
        self.cancel_events.append(cancel)
        return [
            DiskSample(volume_id=v.mountpoint, free_bytes=1024, throughput_mbps=self.speed)
            for v in volumes
        ]


@pytest.fixture
def fast_config() -> MonitorConfig:
    """Config with short cadences for threaded tests."""
    return MonitorConfig(fast_interval=0.05, slow_interval=0.1, benchmark_window=0.01)


@pytest.fixture
def volume(tmp_path) -> Volume:
    """A volume rooted in a temporary directory."""
    return Volume(device="tmpfs", mountpoint=str(tmp_path), fstype="tmpfs")
