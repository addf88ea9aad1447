"""Data models for sysdiag."""

from dataclasses import dataclass
from enum import Enum


class RankMetric(Enum):
    """Metrics the process list can be ranked by."""

    CPU = "cpu"
    RAM = "ram"
    STORAGE = "storage"


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable sample of a single process."""

    name: str
    cpu_seconds: float  # Cumulative processor time since start, not a rate
    memory_mb: float  # Private bytes / 1024**2
    storage_metric: float = 0.0  # Not computed, always 0.0


@dataclass(slots=True, frozen=True)
class Volume:
    """A fixed (non-removable) volume."""

    device: str
    mountpoint: str
    fstype: str = ""


@dataclass(slots=True, frozen=True)
class DiskSample:
    """Free space and benchmarked throughput of one fixed volume."""

    volume_id: str
    free_bytes: int
    throughput_mbps: float


@dataclass(slots=True, frozen=True)
class HardwareFacts:
    """
    Static-ish hardware and OS facts.

    Every field defaults to its "unavailable" sentinel (empty string or zero),
    which is what a probe leaves behind when the OS refuses to answer.
    """

    cpu_name: str = ""
    cpu_cores: int = 0
    total_memory_bytes: int = 0
    gpu_name: str = ""
    gpu_vram_bytes: int = 0
    os_caption: str = ""
    os_version: str = ""


@dataclass(slots=True, frozen=True)
class MemoryReading:
    """Available-memory headline published on the fast cadence."""

    available_bytes: int
    timestamp: float


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Snapshot of overall system state produced by one slow-cadence tick."""

    sequence: int
    timestamp: float
    metric: RankMetric
    hardware: HardwareFacts
    available_memory_bytes: int
    disks: tuple[DiskSample, ...]
    processes: tuple[ProcessSample, ...]  # Ranked by metric, top N only
