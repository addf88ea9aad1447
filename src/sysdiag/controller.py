"""Process termination by name."""

import psutil
import structlog

from sysdiag.errors import KillFailedError, ProcessNotFoundError
from sysdiag.sampler import is_running

log = structlog.get_logger()


class ProcessController:
    """
    Kills processes by exact name.

    Only the first live match (in enumeration order) is killed. When several
    processes share a name, e.g. one per browser tab, the others keep running.
    """

    def find(self, name: str) -> list[psutil.Process]:
        """Return live processes whose name is exactly ``name``."""
        matches: list[psutil.Process] = []
        for proc in psutil.process_iter():
            try:
                if proc.name() == name and is_running(proc):
                    matches.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return matches

    def terminate(self, name: str) -> None:
        """
        Kill the first live process named ``name``.

        Raises:
            ProcessNotFoundError: No live process has that name.
            KillFailedError: The process could not be killed (it exited in
                the meantime, or the caller lacks the privilege).
        """
        matches = self.find(name)
        if not matches:
            log.info("terminate_not_found", name=name)
            raise ProcessNotFoundError(name)

        target = matches[0]
        try:
            target.kill()
        except psutil.NoSuchProcess as e:
            log.warning("terminate_failed", name=name, pid=target.pid, reason="process exited")
            raise KillFailedError(name, "process exited before it could be killed") from e
        except psutil.AccessDenied as e:
            log.warning("terminate_failed", name=name, pid=target.pid, reason="access denied")
            raise KillFailedError(name, "access denied") from e

        log.info("terminate_ok", name=name, pid=target.pid, remaining_matches=len(matches) - 1)
