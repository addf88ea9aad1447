"""Exception hierarchy for sysdiag."""


class SysdiagError(Exception):
    """Base class for all sysdiag errors."""


class ConfigError(SysdiagError):
    """Raised when a MonitorConfig value is out of range."""


class ProcessControlError(SysdiagError):
    """Base class for process termination failures."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class ProcessNotFoundError(ProcessControlError):
    """No live process has the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"No running process named {name!r}")


class KillFailedError(ProcessControlError):
    """A matching process was found but could not be killed."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(name, f"Failed to kill {name!r}: {reason}")
        self.reason = reason
