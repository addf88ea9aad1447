"""Per-process resource sampling."""

import psutil

from sysdiag.models import ProcessSample

MEBIBYTE = 1024 * 1024

# Errors that mean "this one process can't be inspected right now"
_PROCESS_ERRORS = (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError)


class ProcessSampler:
    """
    Enumerates live processes and reads their CPU and memory figures.

    cpu_seconds is the cumulative user + system processor time since the
    process started, not a percentage: ranking by it favours long-lived
    processes over recently busy ones. memory_mb is private bytes scaled by
    1024**2. storage_metric is never computed and stays 0.0.

    A metric that cannot be read (the process exited mid-scan, or access was
    denied) is reported as 0.0 for that process only; sample() never raises.
    """

    def sample(self) -> list[ProcessSample]:
        """Return one ProcessSample per running process, in enumeration order."""
        samples: list[ProcessSample] = []

        for proc in psutil.process_iter():
            with proc.oneshot():
                if not is_running(proc):
                    continue
                samples.append(
                    ProcessSample(
                        name=_name(proc),
                        cpu_seconds=_cpu_seconds(proc),
                        memory_mb=_memory_mb(proc),
                        storage_metric=0.0,
                    )
                )

        return samples


def is_running(proc: psutil.Process) -> bool:
    """Return False for processes that have exited or are zombies."""
    try:
        return proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        # Includes ZombieProcess
        return False
    except (psutil.AccessDenied, OSError):
        return True


def _name(proc: psutil.Process) -> str:
    try:
        return proc.name() or ""
    except _PROCESS_ERRORS:
        return ""


def _cpu_seconds(proc: psutil.Process) -> float:
    try:
        times = proc.cpu_times()
    except _PROCESS_ERRORS:
        return 0.0
    return float(times.user + times.system)


def _memory_mb(proc: psutil.Process) -> float:
    try:
        mem = proc.memory_info()
    except _PROCESS_ERRORS:
        return 0.0
    # Windows exposes private bytes directly; elsewhere RSS is the closest figure
    private = getattr(mem, "private", mem.rss)
    return private / MEBIBYTE
