"""Sampling scheduler for sysdiag."""

import threading
import time
from collections.abc import Callable, Sequence
from enum import Enum
from queue import Queue

import structlog

from sysdiag.benchmark import DiskBenchmark
from sysdiag.config import MonitorConfig
from sysdiag.controller import ProcessController
from sysdiag.hardware import HardwareProbe, PsutilHardwareProbe, available_memory_bytes
from sysdiag.models import (
    DiskSample,
    HardwareFacts,
    MemoryReading,
    ProcessSample,
    RankMetric,
    SystemSnapshot,
    Volume,
)
from sysdiag.ranking import rank
from sysdiag.sampler import ProcessSampler
from sysdiag.volumes import list_fixed_volumes

log = structlog.get_logger()

Update = SystemSnapshot | MemoryReading


class MonitorState(Enum):
    """Lifecycle of a SystemMonitor."""

    STOPPED = "stopped"
    RUNNING = "running"


class SnapshotSlot:
    """
    Holds the current SystemSnapshot and publishes replacements.

    publish() numbers the snapshot and enqueues it under one lock, so queue
    order always matches sequence order and readers only ever see complete
    values.
    """

    def __init__(self, update_queue: "Queue[Update]") -> None:
        self._queue = update_queue
        self._lock = threading.Lock()
        self._current: SystemSnapshot | None = None
        self._sequence = 0

    @property
    def current(self) -> SystemSnapshot | None:
        """The most recently published snapshot, if any."""
        return self._current

    @property
    def sequence(self) -> int:
        """Sequence number of the most recent snapshot (0 before the first)."""
        return self._sequence

    def publish(
        self,
        metric: RankMetric,
        hardware: HardwareFacts,
        available_memory: int,
        disks: Sequence[DiskSample],
        processes: Sequence[ProcessSample],
    ) -> SystemSnapshot:
        """Build the next snapshot, make it current and enqueue it."""
        with self._lock:
            self._sequence += 1
            snapshot = SystemSnapshot(
                sequence=self._sequence,
                timestamp=time.time(),
                metric=metric,
                hardware=hardware,
                available_memory_bytes=available_memory,
                disks=tuple(disks),
                processes=tuple(processes),
            )
            self._current = snapshot
            self._queue.put(snapshot)
        return snapshot


class SystemMonitor:
    """
    Drives the two sampling cadences and owns the current snapshot.

    The fast cadence pushes a MemoryReading every ``fast_interval`` seconds.
    The slow cadence runs hardware probe, disk benchmark, process sample and
    ranking every ``slow_interval`` seconds and publishes a SystemSnapshot.
    Both run on daemon threads so the UI thread never blocks on I/O; results
    arrive through ``update_queue``.

    Slow ticks never overlap: a refresh requested while a tick is running is
    remembered once and served right after it finishes. Switching the rank
    metric only re-samples processes; hardware and disk figures are carried
    over from the current snapshot.

    Every start() gets its own stop and wake events, so a thread left over
    from a stop() that timed out keeps seeing its own stop request and can
    never rejoin a later run.
    """

    def __init__(
        self,
        update_queue: "Queue[Update]",
        config: MonitorConfig | None = None,
        probe: HardwareProbe | None = None,
        sampler: ProcessSampler | None = None,
        benchmark: DiskBenchmark | None = None,
        controller: ProcessController | None = None,
        volume_source: Callable[[], list[Volume]] | None = None,
        memory_source: Callable[[], int] | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue receiving snapshots and memory readings.
            config: Cadences and benchmark sizing. Defaults to MonitorConfig().
            probe: Hardware fact source.
            sampler: Process enumeration.
            benchmark: Disk throughput benchmark.
            controller: Process termination.
            volume_source: Returns the fixed volumes to report.
            memory_source: Returns available memory in bytes.
        """
        self._config = config or MonitorConfig()
        self._queue = update_queue
        self._slot = SnapshotSlot(update_queue)
        self._probe = probe or PsutilHardwareProbe()
        self._sampler = sampler or ProcessSampler()
        self._benchmark = benchmark or DiskBenchmark(
            buffer_bytes=self._config.benchmark_buffer_bytes,
            window=self._config.benchmark_window,
            read_file_buffers=self._config.read_file_buffers,
        )
        self._controller = controller or ProcessController()
        self._volume_source = volume_source or list_fixed_volumes
        self._memory_source = memory_source or available_memory_bytes
        self._metric = self._config.default_metric

        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._full_refresh = threading.Event()
        self._tick_lock = threading.Lock()
        self._fast_thread: threading.Thread | None = None
        self._slow_thread: threading.Thread | None = None

    @property
    def update_queue(self) -> "Queue[Update]":
        """Queue receiving snapshots and memory readings."""
        return self._queue

    @property
    def config(self) -> MonitorConfig:
        """The start-up configuration."""
        return self._config

    @property
    def is_running(self) -> bool:
        """Check if the cadence threads are running and no stop was requested."""
        return (
            self._slow_thread is not None
            and self._slow_thread.is_alive()
            and not self._stop_event.is_set()
        )

    @property
    def state(self) -> MonitorState:
        """Current lifecycle state."""
        return MonitorState.RUNNING if self.is_running else MonitorState.STOPPED

    @property
    def current_snapshot(self) -> SystemSnapshot | None:
        """The latest published snapshot."""
        return self._slot.current

    @property
    def rank_metric(self) -> RankMetric:
        """Metric the published process list is ranked by."""
        return self._metric

    @rank_metric.setter
    def rank_metric(self, value: RankMetric | str) -> None:
        """Switch the ranking metric and request a process-only re-rank."""
        self._metric = RankMetric(value)
        self._wake_event.set()

    def start(self) -> None:
        """
        Start both cadence threads. The first snapshot is collected immediately.

        Threads still draining from an earlier stop() are joined first, so
        at most one slow cadence is ever alive.
        """
        if self.is_running:
            return

        self._join_threads(timeout=None)
        stop_event = threading.Event()
        wake_event = threading.Event()
        self._stop_event = stop_event
        self._wake_event = wake_event
        self._full_refresh.clear()
        self._fast_thread = threading.Thread(
            target=self._fast_loop,
            args=(stop_event,),
            daemon=True,
            name="SystemMonitor-fast",
        )
        self._slow_thread = threading.Thread(
            target=self._slow_loop,
            args=(stop_event, wake_event),
            daemon=True,
            name="SystemMonitor-slow",
        )
        self._fast_thread.start()
        self._slow_thread.start()
        log.info(
            "monitor_started",
            fast_interval=self._config.fast_interval,
            slow_interval=self._config.slow_interval,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop both cadence threads.

        An in-flight disk benchmark is cancelled at its next buffer boundary
        and removes its scratch files before the thread exits; the tick it
        belonged to publishes nothing. A thread that outlives ``timeout`` is
        kept and joined by the next start().

        Args:
            timeout: How long to wait for each thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        self._join_threads(timeout=timeout)
        log.info("monitor_stopped")

    def request_refresh(self) -> None:
        """Ask for a full slow-cadence tick as soon as the current one (if any) is done."""
        self._full_refresh.set()
        self._wake_event.set()

    def terminate(self, name: str) -> None:
        """
        Kill the first process named ``name`` and request a fresh snapshot.

        Raises:
            ProcessNotFoundError: No live process has that name.
            KillFailedError: The process could not be killed.
        """
        self._controller.terminate(name)
        self.request_refresh()

    def tick(self, cancel: threading.Event | None = None) -> SystemSnapshot | None:
        """
        Run one full sample -> rank -> publish pass.

        Returns None without doing anything if another tick is in progress,
        if the tick failed (the failure is logged) or if ``cancel`` was set
        before the snapshot could be published.
        """
        return self._locked(self._collect_and_publish, cancel)

    def rerank(self, cancel: threading.Event | None = None) -> SystemSnapshot | None:
        """
        Re-sample processes and publish them ranked by the current metric.

        Hardware facts and disk samples are reused from the current snapshot;
        with no snapshot yet this is a full tick. Returns None under the same
        conditions as tick().
        """
        return self._locked(self._rerank_and_publish, cancel)

    def _locked(
        self,
        step: Callable[[threading.Event | None], SystemSnapshot | None],
        cancel: threading.Event | None,
    ) -> SystemSnapshot | None:
        if not self._tick_lock.acquire(blocking=False):
            log.debug("tick_skipped")
            return None
        try:
            return step(cancel)
        except Exception:
            log.exception("tick_failed")
            return None
        finally:
            self._tick_lock.release()

    def _join_threads(self, timeout: float | None) -> None:
        for attr in ("_fast_thread", "_slow_thread"):
            thread: threading.Thread | None = getattr(self, attr)
            if thread is None:
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("monitor_thread_still_running", thread=thread.name)
            else:
                setattr(self, attr, None)

    def _fast_loop(self, stop_event: threading.Event) -> None:
        """Publish the available-memory headline until stopped."""
        while not stop_event.is_set():
            try:
                self._queue.put(
                    MemoryReading(available_bytes=self._memory_source(), timestamp=time.time())
                )
            except Exception:
                log.exception("fast_tick_failed")
            stop_event.wait(timeout=self._config.fast_interval)

    def _slow_loop(self, stop_event: threading.Event, wake_event: threading.Event) -> None:
        """Run slow ticks until stopped, waking early for refreshes and re-ranks."""
        full = True
        while not stop_event.is_set():
            if full:
                self.tick(stop_event)
            else:
                self.rerank(stop_event)
            woken = wake_event.wait(timeout=self._config.slow_interval)
            wake_event.clear()
            full = not woken or self._full_refresh.is_set()
            if full:
                self._full_refresh.clear()

    def _collect_and_publish(self, cancel: threading.Event | None) -> SystemSnapshot | None:
        metric = self._metric
        hardware = self._probe_hardware()
        available = self._memory_source()
        disks = self._benchmark.sample_volumes(self._volumes(), cancel=cancel)
        processes = rank(self._sampler.sample(), metric, self._config.top_n)
        return self._publish(metric, hardware, available, disks, processes, cancel)

    def _rerank_and_publish(self, cancel: threading.Event | None) -> SystemSnapshot | None:
        current = self._slot.current
        if current is None:
            return self._collect_and_publish(cancel)
        metric = self._metric
        processes = rank(self._sampler.sample(), metric, self._config.top_n)
        return self._publish(
            metric,
            current.hardware,
            self._memory_source(),
            current.disks,
            processes,
            cancel,
        )

    def _publish(
        self,
        metric: RankMetric,
        hardware: HardwareFacts,
        available: int,
        disks: Sequence[DiskSample],
        processes: Sequence[ProcessSample],
        cancel: threading.Event | None,
    ) -> SystemSnapshot | None:
        # A cancelled benchmark reports 0.0, which must never reach a snapshot
        if cancel is not None and cancel.is_set():
            log.info("tick_cancelled", metric=metric.value)
            return None
        snapshot = self._slot.publish(
            metric=metric,
            hardware=hardware,
            available_memory=available,
            disks=disks,
            processes=processes,
        )
        log.debug(
            "snapshot_published",
            sequence=snapshot.sequence,
            metric=metric.value,
            disks=len(snapshot.disks),
            processes=len(snapshot.processes),
        )
        return snapshot

    def _probe_hardware(self) -> HardwareFacts:
        try:
            return self._probe.probe()
        except Exception as e:
            log.warning("hardware_probe_failed", error=str(e))
            return HardwareFacts()

    def _volumes(self) -> list[Volume]:
        try:
            return list(self._volume_source())
        except Exception as e:
            log.warning("volume_enumeration_failed", error=str(e))
            return []
