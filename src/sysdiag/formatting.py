"""Human-readable formatting helpers."""

GIGABYTE = 1024**3
MEGABYTE = 1024**2


def format_bytes(size: int) -> str:
    """Format a byte count as a human-readable string (GB, MB or bytes)."""
    if size >= GIGABYTE:
        return f"{size / GIGABYTE:.2f} GB"
    if size >= MEGABYTE:
        return f"{size / MEGABYTE:.2f} MB"
    return f"{size} bytes"
