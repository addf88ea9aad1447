"""Top-N ranking of process samples."""

from collections.abc import Callable, Iterable

from sysdiag.models import ProcessSample, RankMetric

_KEY_FUNCS: dict[RankMetric, Callable[[ProcessSample], float]] = {
    RankMetric.CPU: lambda p: p.cpu_seconds,
    RankMetric.RAM: lambda p: p.memory_mb,
    RankMetric.STORAGE: lambda p: p.storage_metric,
}


def rank(
    samples: Iterable[ProcessSample],
    metric: RankMetric | str,
    limit: int = 10,
) -> list[ProcessSample]:
    """
    Return the top ``limit`` samples, descending by the chosen metric.

    Ties keep their input order. ``metric`` may be a RankMetric or its value
    ("cpu", "ram", "storage"); anything else raises ValueError rather than
    falling back to a default ordering.
    """
    metric = RankMetric(metric)
    if limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")
    # sorted() is stable and reverse=True preserves the order of equal keys
    ordered = sorted(samples, key=_KEY_FUNCS[metric], reverse=True)
    return ordered[:limit]
