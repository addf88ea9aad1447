"""sysdiag - Main Textual application."""

import tempfile
from pathlib import Path
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from sysdiag.errors import KillFailedError, ProcessNotFoundError
from sysdiag.formatting import format_bytes
from sysdiag.logging import configure
from sysdiag.models import DiskSample, HardwareFacts, MemoryReading, ProcessSample, RankMetric
from sysdiag.monitor import SystemMonitor, SystemSnapshot, Update

LOG_PATH = Path(tempfile.gettempdir()) / "sysdiag" / "sysdiag.log"


class HeaderStats(Static):
    """Header widget showing hardware facts and the available-memory headline."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 6;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._hardware: HardwareFacts | None = None
        self._available_bytes: int | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Static(self._get_hardware_info(), id="hardware-info")
        yield Static(self._get_ram_info(), id="ram-info")

    def update_hardware(self, hardware: HardwareFacts) -> None:
        """Show the hardware facts from a snapshot."""
        self._hardware = hardware
        self.query_one("#hardware-info", Static).update(self._get_hardware_info())

    def update_memory(self, reading: MemoryReading) -> None:
        """Show the latest available-memory reading."""
        self._available_bytes = reading.available_bytes
        self.query_one("#ram-info", Static).update(self._get_ram_info())

    def _get_hardware_info(self) -> str:
        hw = self._hardware
        if hw is None:
            return "Loading system info..."
        return (
            f"CPU: {hw.cpu_name or 'unknown'} (Cores: {hw.cpu_cores})\n"
            f"Total Memory: {format_bytes(hw.total_memory_bytes)}\n"
            f"GPU: {hw.gpu_name or 'unknown'}  VRAM: {format_bytes(hw.gpu_vram_bytes)}\n"
            f"OS: {hw.os_caption or 'unknown'} (Version: {hw.os_version or 'unknown'})"
        )

    def _get_ram_info(self) -> str:
        if self._available_bytes is None:
            return "Available RAM: ..."
        return f"Available RAM: {format_bytes(self._available_bytes)}"


class DiskTable(Container):
    """Free space and throughput per fixed volume."""

    DEFAULT_CSS = """
    DiskTable {
        height: auto;
        max-height: 8;
        border: solid $secondary;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the disk table."""
        yield DataTable(id="disk-table", show_cursor=False)

    def on_mount(self) -> None:
        """Add the table columns."""
        table = self.query_one("#disk-table", DataTable)
        table.add_column("Drive", key="drive")
        table.add_column("Free Space", key="free", width=12)
        table.add_column("Speed", key="speed", width=14)

    def update_disks(self, disks: tuple[DiskSample, ...]) -> None:
        """Replace the rows with the snapshot's disk samples."""
        table = self.query_one("#disk-table", DataTable)
        table.clear()
        for disk in disks:
            table.add_row(
                disk.volume_id,
                format_bytes(disk.free_bytes),
                f"{disk.throughput_mbps:.2f} MB/s",
            )


class ProcessTable(Container):
    """Container for the ranked top-process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._names: list[str] = []
        self._metric: RankMetric = RankMetric.CPU

    @property
    def names(self) -> list[str]:
        """Process names in display order."""
        return list(self._names)

    @property
    def metric(self) -> RankMetric:
        """Metric of the currently displayed ranking."""
        return self._metric

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Name", key="name")
        table.add_column("CPU (s)", key="cpu", width=12)
        table.add_column("RAM (MB)", key="ram", width=12)
        table.add_column("Storage", key="storage", width=9)

    def update_processes(self, processes: tuple[ProcessSample, ...], metric: RankMetric) -> None:
        """Replace the rows with an already-ranked process list."""
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for proc in processes:
            table.add_row(
                proc.name,
                f"{proc.cpu_seconds:.2f}",
                f"{proc.memory_mb:.2f}",
                f"{proc.storage_metric:.0f}",
            )
        self._names = [proc.name for proc in processes]
        self._metric = metric

    def selected_name(self) -> str | None:
        """Name of the process under the cursor, if any."""
        table = self.query_one("#process-table", DataTable)
        row = table.cursor_row
        if 0 <= row < len(self._names):
            return self._names[row]
        return None


class SysdiagApp(App):
    """Main sysdiag application."""

    TITLE = "sysdiag"
    SUB_TITLE = "System Diagnostics"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("c", "rank('cpu')", "Top CPU"),
        ("r", "rank('ram')", "Top RAM"),
        ("s", "rank('storage')", "Top Storage"),
        ("f5", "refresh", "Refresh"),
        ("k", "kill", "Kill"),
    ]

    def __init__(self, monitor: SystemMonitor | None = None) -> None:
        """
        Initialize the SysdiagApp.

        Args:
            monitor: Pre-built monitor; updates are read from its queue. By
                default a monitor with psutil-backed collaborators is created.
        """
        super().__init__()
        if monitor is None:
            self._update_queue: Queue[Update] = Queue()
            self._monitor = SystemMonitor(self._update_queue)
        else:
            self._update_queue = monitor.update_queue
            self._monitor = monitor
        self._last_sequence = 0

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield DiskTable()
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the newest snapshot and memory reading."""
        snapshot: SystemSnapshot | None = None
        reading: MemoryReading | None = None
        while True:
            try:
                update = self._update_queue.get_nowait()
            except Empty:
                break
            if isinstance(update, SystemSnapshot):
                snapshot = update
            else:
                reading = update

        if reading is not None:
            try:
                self.query_one("#header-stats", HeaderStats).update_memory(reading)
            except NoMatches:
                pass  # Screen is being torn down
        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: SystemSnapshot) -> None:
        """Update the UI with a new system snapshot, ignoring stale ones."""
        if snapshot.sequence <= self._last_sequence:
            return
        self._last_sequence = snapshot.sequence
        try:
            self.query_one("#header-stats", HeaderStats).update_hardware(snapshot.hardware)
            self.query_one(DiskTable).update_disks(snapshot.disks)
            self.query_one(ProcessTable).update_processes(snapshot.processes, snapshot.metric)
        except NoMatches:
            pass  # Screen is being torn down

    def action_rank(self, metric: str) -> None:
        """Switch the ranking metric."""
        self._monitor.rank_metric = RankMetric(metric)
        self.notify(f"Top processes by {metric.upper()}")

    def action_refresh(self) -> None:
        """Ask the monitor for a fresh snapshot."""
        self._monitor.request_refresh()

    def action_kill(self) -> None:
        """Kill the process selected in the table."""
        name = self.query_one(ProcessTable).selected_name()
        if not name:
            self.notify("No process selected", severity="warning")
            return
        try:
            self._monitor.terminate(name)
        except ProcessNotFoundError:
            self.notify(f"Process {name!r} not found", severity="warning")
        except KillFailedError as e:
            self.notify(f"Error killing process: {e.reason}", severity="error")
        else:
            self.notify(f"Killed {name}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for sysdiag application."""
    configure(log_path=LOG_PATH)
    app = SysdiagApp()
    app.run()


if __name__ == "__main__":
    main()
