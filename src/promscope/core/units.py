"""Unit inference from metric names and human-readable value formatting."""

import math

UNIT_FORMATS = ("raw", "count", "memory", "time", "percent")

MEMORY_SUFFIXES = ("_bytes", "_bytes_total")
TIME_SUFFIXES = ("_seconds", "_duration")
PERCENT_SUFFIXES = ("_fraction", "_ratio", "_usage", "_percent")
COUNT_SUFFIXES = (
    "_total",
    "_count",
    "_num",
    "_active",
    "_counter",
    "_delta",
    "_points",
    "_complete",
    "_busy",
    "_calls",
    "_fails",
    "_failure",
    "_writes",
    "_reads",
    "_frees",
    "_mallocs",
    "_lookups",
    "_objects",
    "_queued",
    "_dropped",
    "_failed",
    "_err",
    "_timeouts",
    "_series",
)

# Checked in order; memory wins over count for ``*_bytes_total``.
_UNIT_TABLE = (
    ("memory", MEMORY_SUFFIXES),
    ("time", TIME_SUFFIXES),
    ("percent", PERCENT_SUFFIXES),
    ("count", COUNT_SUFFIXES),
)

MISSING = "--"


def infer_unit(metric_name: str | None) -> str:
    """Guess the display unit of a metric from its name suffix.

    Args:
        metric_name: Metric name, matched case-insensitively.

    Returns:
        One of ``raw``, ``count``, ``memory``, ``time``, ``percent``.
    """
    if not metric_name:
        return "raw"
    name = metric_name.lower()
    for unit, suffixes in _UNIT_TABLE:
        if name.endswith(suffixes):
            return unit
    return "raw"


def _special(value: float | None, suffix: str = "") -> str | None:
    if value is None or math.isnan(value):
        return MISSING
    if math.isinf(value):
        return ("∞" if value > 0 else "-∞") + suffix
    return None


def format_count(count: float | None, decimals: int = 1) -> str:
    """Format a count with k/M/B/T suffixes (``1.5M``)."""
    special = _special(count)
    if special is not None:
        return special
    if count == 0:
        return "0"
    if count < 0:
        return "-" + format_count(-count, decimals)

    dm = max(0, decimals)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "k")):
        if count >= threshold:
            return f"{count / threshold:.{dm}f}{suffix}"
    if float(count).is_integer():
        return str(int(count))
    return f"{count:.{dm}f}"


def format_bytes(size: float | None, decimals: int = 2) -> str:
    """Format a byte size with 1024-based units (``1.5 GB``)."""
    special = _special(size)
    if special is not None:
        return special
    if size == 0:
        return "0 B"
    if size < 0:
        return "-" + format_bytes(-size, decimals)

    sizes = ("B", "KB", "MB", "GB", "TB", "PB", "EB")
    dm = max(0, decimals)
    index = 0
    while index < len(sizes) - 1 and size >= 1024 ** (index + 1):
        index += 1
    scaled = round(size / 1024**index, dm)
    text = f"{scaled:.{dm}f}".rstrip("0").rstrip(".") if dm else f"{scaled:.0f}"
    return f"{text} {sizes[index]}"


def format_duration(seconds: float | None) -> str:
    """Format a duration given in seconds (``250.0ms``, ``1.50s``, ``2.0h``)."""
    special = _special(seconds)
    if special is not None:
        return special
    if seconds == 0:
        return "0s"
    if seconds < 0:
        return "-" + format_duration(-seconds)

    if seconds < 1e-6:
        return f"{seconds * 1e9:.0f}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f}μs"
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    if seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    return f"{seconds / 86400:.1f}d"


def format_percent(
    value: float | None, decimals: int = 1, is_fraction: bool = True
) -> str:
    """Format a percentage; fractions (0-1) are scaled by 100."""
    special = _special(value, "%")
    if special is not None:
        return special
    pct = value * 100 if is_fraction else value
    return f"{pct:.{decimals}f}%"


def format_uptime(seconds: float) -> str:
    """``93784`` -> ``1d 2h 3m``."""
    total = int(seconds) if math.isfinite(seconds) and seconds > 0 else 0
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    return f"{days}d {hours}h {rest // 60}m"


def format_value(
    value: float | None, unit: str, max_value: float | None = None
) -> str:
    """Format ``value`` for display in the given unit.

    For ``percent`` with a ``max_value`` the value is shown as a share of
    that maximum; otherwise it is treated as a 0-1 fraction.
    """
    if value is None or math.isnan(value):
        return MISSING
    if unit == "memory":
        return format_bytes(value)
    if unit == "time":
        return format_duration(value)
    if unit == "percent":
        if max_value:
            return format_percent(value / max_value)
        return format_percent(value)
    if unit == "count":
        return format_count(value)
    special = _special(value)
    if special is not None:
        return special
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"
