"""Time-boxed disk throughput benchmark."""

import os
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from sysdiag.models import DiskSample, Volume
from sysdiag.volumes import free_bytes

log = structlog.get_logger()

BYTES_PER_MB = 1_000_000


class BenchmarkCancelled(Exception):
    """Raised internally when the cancel event is set mid-pass."""


def throughput_mbps(nbytes: int, elapsed: float) -> float:
    """MB/s for nbytes moved in elapsed seconds; 0.0 when either is not positive."""
    if nbytes <= 0 or elapsed <= 0:
        return 0.0
    return nbytes / BYTES_PER_MB / elapsed


class DiskBenchmark:
    """
    Measures read/write throughput of a volume with scratch files in its root.

    Each pass moves a fixed buffer repeatedly for a fixed wall-clock window.
    The reported figure is the mean of the write and read throughput. Any I/O
    error yields 0.0 for that volume, and scratch files are always removed.
    """

    def __init__(
        self,
        buffer_bytes: int = 1024 * 1024,
        window: float = 1.0,
        read_file_buffers: int = 8,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """
        Initialize the DiskBenchmark.

        Args:
            buffer_bytes: Size of each write/read block.
            window: Seconds each pass runs for.
            read_file_buffers: Number of blocks in the read-pass scratch file.
            clock: Monotonic clock, injectable for tests.
        """
        self._buffer_bytes = buffer_bytes
        self._window = window
        self._read_file_buffers = read_file_buffers
        self._clock = clock

    def scratch_paths(self, volume: Volume) -> tuple[Path, Path]:
        """Return the (write, read) scratch file paths used on a volume."""
        root = Path(volume.mountpoint)
        pid = os.getpid()
        return root / f".sysdiag-write-{pid}.tmp", root / f".sysdiag-read-{pid}.tmp"

    def measure(self, volume: Volume, cancel: threading.Event | None = None) -> float:
        """
        Benchmark one volume and return its mean throughput in MB/s.

        Never raises for I/O problems: permission errors, a full disk or a
        volume vanishing mid-test are logged and reported as 0.0. Setting
        ``cancel`` stops the run at the next buffer boundary, also yielding 0.0.
        """
        write_path, read_path = self.scratch_paths(volume)
        created: list[Path] = []
        buffer = os.urandom(self._buffer_bytes)

        try:
            write_speed = self._write_pass(write_path, buffer, created, cancel)
            self._prepare_read_file(read_path, buffer, created, cancel)
            read_speed = self._read_pass(read_path, cancel)
        except BenchmarkCancelled:
            log.info("disk_benchmark_cancelled", volume=volume.mountpoint)
            return 0.0
        except OSError as e:
            log.warning("disk_benchmark_failed", volume=volume.mountpoint, error=str(e))
            return 0.0
        finally:
            self._cleanup(created)

        log.debug(
            "disk_benchmark_complete",
            volume=volume.mountpoint,
            write_mbps=round(write_speed, 2),
            read_mbps=round(read_speed, 2),
        )
        return (write_speed + read_speed) / 2.0

    def sample_volumes(
        self,
        volumes: Iterable[Volume],
        cancel: threading.Event | None = None,
    ) -> list[DiskSample]:
        """Report free space and throughput for every volume, one failure at a time."""
        samples: list[DiskSample] = []
        for volume in volumes:
            free = free_bytes(volume)
            if cancel is not None and cancel.is_set():
                speed = 0.0
            else:
                speed = self.measure(volume, cancel)
            samples.append(
                DiskSample(volume_id=volume.mountpoint, free_bytes=free, throughput_mbps=speed)
            )
        return samples

    def _write_pass(
        self,
        path: Path,
        buffer: bytes,
        created: list[Path],
        cancel: threading.Event | None,
    ) -> float:
        written = 0
        with open(path, "wb", buffering=0) as f:
            created.append(path)
            start = self._clock()
            while self._clock() - start < self._window:
                _check_cancel(cancel)
                written += f.write(buffer)
            elapsed = self._clock() - start
        return throughput_mbps(written, elapsed)

    def _prepare_read_file(
        self,
        path: Path,
        buffer: bytes,
        created: list[Path],
        cancel: threading.Event | None,
    ) -> None:
        with open(path, "wb") as f:
            created.append(path)
            for _ in range(self._read_file_buffers):
                _check_cancel(cancel)
                f.write(buffer)
            f.flush()
            os.fsync(f.fileno())

    def _read_pass(
        self,
        path: Path,
        cancel: threading.Event | None,
    ) -> float:
        block = bytearray(self._buffer_bytes)
        total = 0
        with open(path, "rb", buffering=0) as f:
            start = self._clock()
            while self._clock() - start < self._window:
                _check_cancel(cancel)
                n = f.readinto(block)
                if not n:
                    f.seek(0)
                    continue
                total += n
            elapsed = self._clock() - start
        return throughput_mbps(total, elapsed)

    @staticmethod
    def _cleanup(paths: list[Path]) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning("scratch_cleanup_failed", path=str(path), error=str(e))


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise BenchmarkCancelled()
