"""Start-up constants for the sampling engine."""

from dataclasses import dataclass

from sysdiag.errors import ConfigError
from sysdiag.models import RankMetric


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Cadences and benchmark sizing. There is no config file; pass overrides at start-up."""

    fast_interval: float = 1.0  # Seconds between available-memory readings
    slow_interval: float = 10.0  # Seconds between full snapshots
    benchmark_buffer_bytes: int = 1024 * 1024  # 1 MiB write/read block
    benchmark_window: float = 1.0  # Seconds per benchmark pass
    read_file_buffers: int = 8  # Size of the read-pass scratch file, in buffers
    top_n: int = 10
    default_metric: RankMetric = RankMetric.CPU

    def __post_init__(self) -> None:
        if self.fast_interval <= 0:
            raise ConfigError(f"fast_interval must be positive, got {self.fast_interval}")
        if self.slow_interval <= 0:
            raise ConfigError(f"slow_interval must be positive, got {self.slow_interval}")
        if self.benchmark_buffer_bytes <= 0:
            raise ConfigError(
                f"benchmark_buffer_bytes must be positive, got {self.benchmark_buffer_bytes}"
            )
        if self.benchmark_window <= 0:
            raise ConfigError(f"benchmark_window must be positive, got {self.benchmark_window}")
        if self.read_file_buffers <= 0:
            raise ConfigError(f"read_file_buffers must be positive, got {self.read_file_buffers}")
        if self.top_n < 0:
            raise ConfigError(f"top_n must not be negative, got {self.top_n}")
        if not isinstance(self.default_metric, RankMetric):
            raise ConfigError(f"default_metric must be a RankMetric, got {self.default_metric!r}")
