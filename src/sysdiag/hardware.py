"""Hardware and OS fact probing."""

import platform
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Protocol

import psutil
import structlog

from sysdiag.models import HardwareFacts

log = structlog.get_logger()

_COMMAND_TIMEOUT = 5.0


class HardwareProbe(Protocol):
    """Supplies HardwareFacts. Injected into SystemMonitor."""

    def probe(self) -> HardwareFacts: ...


def available_memory_bytes() -> int:
    """Return currently available physical memory, or 0 when unreadable."""
    try:
        return int(psutil.virtual_memory().available)
    except (OSError, RuntimeError) as e:
        log.warning("available_memory_unavailable", error=str(e))
        return 0


def _run(command: list[str]) -> str:
    """Run a query command and return its stripped stdout ("" on any failure)."""
    kwargs = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
            timeout=_COMMAND_TIMEOUT,
            **kwargs,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("probe_command_failed", command=command[0], error=str(e))
        return ""
    if result.returncode != 0:
        log.debug("probe_command_failed", command=command[0], returncode=result.returncode)
        return ""
    return result.stdout.strip()


class PsutilHardwareProbe:
    """
    HardwareProbe backed by psutil, platform and vendor query tools.

    Each facet is looked up independently; a facet the OS refuses to report
    keeps its HardwareFacts sentinel and logs a warning the first time (debug
    afterwards), so a sandboxed environment still yields a usable (partially
    empty) result without repeating the same warning every tick.
    """

    def __init__(self) -> None:
        self._reported: set[str] = set()

    def probe(self) -> HardwareFacts:
        """Collect the current hardware facts."""
        gpu_name, gpu_vram = self._gpu()
        os_caption, os_version = self._os()
        return HardwareFacts(
            cpu_name=self._cpu_name(),
            cpu_cores=self._cpu_cores(),
            total_memory_bytes=self._total_memory(),
            gpu_name=gpu_name,
            gpu_vram_bytes=gpu_vram,
            os_caption=os_caption,
            os_version=os_version,
        )

    def _cpu_name(self) -> str:
        name = ""
        if sys.platform.startswith("linux"):
            try:
                for line in Path("/proc/cpuinfo").read_text().splitlines():
                    if line.startswith("model name"):
                        name = line.split(":", 1)[1].strip()
                        break
            except OSError as e:
                self._unavailable("cpu_name_unavailable", error=str(e))
        elif sys.platform == "darwin":
            name = _run(["sysctl", "-n", "machdep.cpu.brand_string"])
        if not name:
            name = platform.processor()
        if not name:
            self._unavailable("cpu_name_unavailable")
        return name

    def _cpu_cores(self) -> int:
        try:
            cores = psutil.cpu_count(logical=False)
        except (OSError, RuntimeError) as e:
            self._unavailable("cpu_cores_unavailable", error=str(e))
            return 0
        return cores or 0

    def _total_memory(self) -> int:
        try:
            return int(psutil.virtual_memory().total)
        except (OSError, RuntimeError) as e:
            self._unavailable("total_memory_unavailable", error=str(e))
            return 0

    def _gpu(self) -> tuple[str, int]:
        """Return (name, vram bytes) of the first GPU found."""
        if shutil.which("nvidia-smi"):
            output = _run(
                [
                    "nvidia-smi",
                    "--query-gpu=name,memory.total",
                    "--format=csv,noheader,nounits",
                ]
            )
            if output:
                return self._parse_nvidia_smi(output)
        if sys.platform == "win32":
            output = _run(["wmic", "path", "win32_VideoController", "get", "AdapterRAM,Name"])
            if output:
                return self._parse_wmic_gpu(output)
        self._unavailable("gpu_unavailable")
        return "", 0

    def _unavailable(self, event: str, **kwargs) -> None:
        """Warn once per facet; later repeats go to debug."""
        if event in self._reported:
            log.debug(event, **kwargs)
        else:
            self._reported.add(event)
            log.warning(event, **kwargs)

    @staticmethod
    def _parse_nvidia_smi(output: str) -> tuple[str, int]:
        # "NVIDIA GeForce RTX 3080, 10240" with memory in MiB
        first = output.splitlines()[0]
        name, _, vram = first.rpartition(",")
        try:
            vram_bytes = int(float(vram.strip())) * 1024 * 1024
        except ValueError:
            vram_bytes = 0
        return name.strip(), vram_bytes

    @staticmethod
    def _parse_wmic_gpu(output: str) -> tuple[str, int]:
        # Header line then "<AdapterRAM>  <Name>"; columns are sorted alphabetically
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if len(lines) < 2:
            return "", 0
        ram, _, name = lines[1].partition(" ")
        try:
            return name.strip(), int(ram)
        except ValueError:
            return lines[1], 0

    def _os(self) -> tuple[str, str]:
        caption = " ".join(part for part in (platform.system(), platform.release()) if part)
        version = platform.version()
        if not caption:
            self._unavailable("os_info_unavailable")
        return caption, version
