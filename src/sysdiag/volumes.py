"""Fixed-volume enumeration."""

import psutil
import structlog

from sysdiag.models import Volume

log = structlog.get_logger()

# Mount options that mark removable media (Windows reports these in opts)
_REMOVABLE_OPTS = ("removable", "cdrom")


def list_fixed_volumes() -> list[Volume]:
    """Return the fixed (non-removable) volumes currently mounted."""
    try:
        partitions = psutil.disk_partitions(all=False)
    except (OSError, RuntimeError) as e:
        log.warning("volume_enumeration_failed", error=str(e))
        return []

    volumes: list[Volume] = []
    for part in partitions:
        opts = part.opts.lower()
        if not part.fstype or any(opt in opts for opt in _REMOVABLE_OPTS):
            continue
        volumes.append(Volume(device=part.device, mountpoint=part.mountpoint, fstype=part.fstype))
    return volumes


def free_bytes(volume: Volume) -> int:
    """Return free space on the volume, 0 when it cannot be read."""
    try:
        return int(psutil.disk_usage(volume.mountpoint).free)
    except OSError as e:
        log.warning("free_space_unavailable", volume=volume.mountpoint, error=str(e))
        return 0
