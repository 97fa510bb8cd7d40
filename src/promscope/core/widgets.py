"""Per-widget view models built on top of the distribution engine.

A dashboard widget names a metric, its type and an optional group-by
label. :func:`compute_widget_view` picks the matching aggregate and shapes
it into one of a handful of view kinds the presentation layer can draw
without further arithmetic.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from promscope.core.distribution import (
    COLLAPSED_COLUMN,
    OTHER_GROUP,
    counter_breakdown,
    histogram_buckets,
    parse_le,
    percentile_label,
    safe_div,
    scalar_value,
    summary_averages,
)
from promscope.core.models import QUANTILE_LABEL, Snapshot, has_label, label_of

VIEW_KINDS = ("empty", "histogram", "summary", "summary-grouped", "bar", "single")

MAX_TIMELINE_POINTS = 60


@dataclass(frozen=True)
class WidgetView:
    """Chart-ready data for one widget.

    Attributes:
        kind: One of ``VIEW_KINDS``.
        rows: Row dicts: ``name``/``range`` with per-series numbers under
            ``values``, or ``name``/``value`` for single-series views.
        keys: Series names present in ``rows``.
        value: Scalar for ``single`` views.
        stats: ``avg``/``sum``/``count`` for summary views.
    """

    kind: str = "empty"
    rows: list[dict[str, Any]] = field(default_factory=list)
    keys: list[str] = field(default_factory=list)
    value: float | None = None
    stats: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind}
        if self.rows or self.kind not in ("empty", "single"):
            data["data"] = self.rows
        if self.keys:
            data["keys"] = self.keys
        if self.value is not None:
            data["value"] = self.value
        data.update(self.stats)
        return data


def _bar(values: Mapping[str, float]) -> WidgetView:
    rows = sorted(
        ({"name": k, "value": v} for k, v in values.items()),
        key=lambda row: row["value"],
        reverse=True,
    )
    return WidgetView(kind="bar", rows=rows)


def _histogram_view(
    snapshot: Snapshot, name: str, group_by: str | None
) -> WidgetView:
    if not snapshot.has(f"{name}_bucket"):
        return WidgetView()
    result = histogram_buckets(snapshot, name, group_by, unit="")
    rows = [
        {"range": row.range, "le": row.le, "values": dict(row.values)}
        for row in result.rows
        if not math.isinf(row.le)
    ]
    return WidgetView(kind="histogram", rows=rows, keys=result.group_names)


def _summary_view(
    snapshot: Snapshot, name: str, group_by: str | None
) -> WidgetView:
    series = snapshot.get(name)
    has_sum = snapshot.has(f"{name}_sum")
    has_count = snapshot.has(f"{name}_count")
    if not series and not has_sum and not has_count:
        return WidgetView()

    total_sum = scalar_value(snapshot, f"{name}_sum")
    total_count = scalar_value(snapshot, f"{name}_count")
    stats = {
        "avg": safe_div(total_sum, total_count),
        "sum": total_sum,
        "count": total_count,
    }
    quantiles = [s for s in series if has_label(s.labels, QUANTILE_LABEL)]

    if group_by:
        averages = {}
        if has_sum and has_count:
            averages = summary_averages(snapshot, name, group_by)
        if not quantiles:
            if averages:
                return _bar(averages)
            return WidgetView(kind="single", value=stats["avg"])

        groups: dict[str, dict[float, float]] = {}
        for sample in quantiles:
            q = parse_le(sample.labels[QUANTILE_LABEL])
            if q is None:
                continue
            key = label_of(sample.labels, group_by) or OTHER_GROUP
            cells = groups.setdefault(key, {})
            cells[q] = cells.get(q, 0.0) + sample.value

        keys = list(groups)
        rows = []
        for q in sorted({q for cells in groups.values() for q in cells}):
            row = {key: groups[key].get(q, 0.0) for key in keys}
            if any(v > 0 and math.isfinite(v) for v in row.values()):
                rows.append({"name": percentile_label(q), "values": row})

        if not rows and averages:
            return _bar(averages)
        avg_row = {key: averages.get(key, 0.0) for key in keys}
        rows.insert(0, {"name": "Avg", "values": avg_row})
        return WidgetView(kind="summary-grouped", rows=rows, keys=keys, stats=stats)

    if quantiles:
        peaks: dict[float, float] = {}
        for sample in quantiles:
            q = parse_le(sample.labels[QUANTILE_LABEL])
            if q is not None:
                peaks[q] = max(peaks.get(q, 0.0), sample.value)
        rows = [{"name": "Avg", COLLAPSED_COLUMN: stats["avg"], "is_avg": True}]
        rows += [
            {"name": percentile_label(q), COLLAPSED_COLUMN: peaks[q]}
            for q in sorted(peaks)
        ]
        return WidgetView(kind="summary", rows=rows, stats=stats)

    return WidgetView(kind="single", value=stats["avg"])


def compute_widget_view(
    snapshot: Snapshot | None,
    name: str,
    metric_type: str,
    group_by: str | None = None,
) -> WidgetView:
    """Build the view for one widget.

    Args:
        snapshot: Current snapshot, or None before the first scrape.
        name: Base metric name.
        metric_type: Catalog type; histogram and summary get dedicated
            views, everything else is treated as a counter/gauge.
        group_by: Label to split by; ``None`` or ``"none"`` disables it.

    Returns:
        The widget view. Missing data yields an ``empty`` view.
    """
    if snapshot is None:
        return WidgetView()
    if group_by == "none":
        group_by = None

    if metric_type == "histogram":
        return _histogram_view(snapshot, name, group_by)
    if metric_type == "summary":
        return _summary_view(snapshot, name, group_by)

    if not snapshot.has(name):
        return WidgetView()
    if group_by:
        rows = counter_breakdown(snapshot, name, group_by)
        return _bar({row.name: row.value for row in rows})
    return WidgetView(kind="single", value=scalar_value(snapshot, name))


@dataclass(frozen=True)
class TimelinePoint:
    timestamp: int
    values: dict[str, float] = field(default_factory=dict)


def timeline(
    snapshots: Iterable[Snapshot],
    name: str,
    group_by: str | None = None,
    label_filters: Mapping[str, str] | None = None,
    limit: int = MAX_TIMELINE_POINTS,
) -> list[TimelinePoint]:
    """One point per snapshot, oldest first, capped at ``limit`` points.

    Without ``group_by`` each point holds a single ``"value"`` series
    (see :func:`scalar_value`); with it, one series per group. Snapshots
    where the metric is absent are skipped.
    """
    points = []
    for snapshot in snapshots:
        if not snapshot.has(name):
            continue
        if group_by:
            rows = counter_breakdown(snapshot, name, group_by)
            values = {row.name: row.value for row in rows}
        else:
            values = {COLLAPSED_COLUMN: scalar_value(snapshot, name, label_filters)}
        points.append(TimelinePoint(timestamp=snapshot.timestamp, values=values))
    return points[-limit:] if limit > 0 else []


@dataclass(frozen=True)
class MemoryBreakdown:
    """Go runtime memory usage derived from ``go_memstats_*`` gauges."""

    heap_alloc: float
    heap_idle: float
    heap_inuse: float
    heap_sys: float
    stack_inuse: float
    gc_sys: float
    sys_total: float
    alloc_total: float
    next_gc: float
    heap_used_percent: float
    memory_pressure: float
    segments: list[tuple[str, float]]


def go_memory_breakdown(snapshot: Snapshot | None) -> MemoryBreakdown | None:
    """Split Go process memory into chartable segments.

    Returns None when there is no snapshot. Segments with no bytes are
    omitted.
    """
    if snapshot is None:
        return None

    def read(suffix: str) -> float:
        return scalar_value(snapshot, f"go_memstats_{suffix}")

    alloc_total = read("alloc_bytes")
    heap_alloc = read("heap_alloc_bytes") or alloc_total
    heap_idle = read("heap_idle_bytes")
    heap_inuse = read("heap_inuse_bytes")
    heap_sys = read("heap_sys_bytes")
    stack_inuse = read("stack_inuse_bytes")
    gc_sys = read("gc_sys_bytes")
    sys_total = read("sys_bytes")

    segments = [
        ("Heap In-Use", heap_inuse or heap_alloc),
        ("Heap Idle", heap_idle),
        ("Stack", stack_inuse),
        ("GC Metadata", gc_sys),
        ("MSpan/MCache", read("mspan_inuse_bytes") + read("mcache_inuse_bytes")),
        ("Other", read("buck_hash_sys_bytes") + read("other_sys_bytes")),
    ]

    return MemoryBreakdown(
        heap_alloc=heap_alloc,
        heap_idle=heap_idle,
        heap_inuse=heap_inuse,
        heap_sys=heap_sys,
        stack_inuse=stack_inuse,
        gc_sys=gc_sys,
        sys_total=sys_total,
        alloc_total=alloc_total,
        next_gc=read("next_gc_bytes"),
        heap_used_percent=safe_div(heap_inuse or heap_alloc, heap_sys) * 100,
        memory_pressure=safe_div(alloc_total, sys_total) * 100,
        segments=[(label, value) for label, value in segments if value > 0],
    )
