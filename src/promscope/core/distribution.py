"""Distribution engine: chart-ready aggregates over parsed snapshots.

Every function here is pure. Inputs are borrowed and never mutated, and a
missing metric produces an empty result rather than an error. Results
never contain NaN: sums that would cancel infinities and divisions by zero
collapse to 0.
"""

import math
from collections.abc import Callable, Iterable, Mapping, Sequence

from promscope.core.catalog import (
    BUCKET_SUFFIX,
    COUNT_SUFFIX,
    METHOD_PATH_GROUP,
    SUM_SUFFIX,
)
from promscope.core.models import (
    LE_LABEL,
    QUANTILE_LABEL,
    BreakdownRow,
    HistogramResult,
    HistogramRow,
    RateRow,
    RateView,
    Sample,
    Snapshot,
    SummaryRow,
    SummaryTable,
    has_label,
    label_of,
)

ALL_GROUP = "All"
OTHER_GROUP = "Other"
GLOBAL_GROUP = "Global"
COLLAPSED_COLUMN = "value"

DEFAULT_RATE_EPSILON = 0.001
DEFAULT_SUMMARY_TOP_N = 5

SampleFilter = Callable[[Sample], bool]


def _accept_all(_sample: Sample) -> bool:
    return True


def label_contains(key: str, substring: str) -> SampleFilter:
    """Build a filter matching samples whose ``key`` label contains ``substring``."""

    def _filter(sample: Sample) -> bool:
        return substring in label_of(sample.labels, key)

    return _filter


def clean(value: float) -> float:
    """Map NaN to 0, leaving finite values and infinities untouched."""
    return 0.0 if math.isnan(value) else value


def safe_div(numerator: float, denominator: float) -> float:
    """Divide, returning 0 for a zero denominator or a NaN result."""
    if denominator <= 0:
        return 0.0
    return clean(numerator / denominator)


def group_key(labels: Mapping[str, str], group_by: str | None) -> str:
    """Resolve the group a sample belongs to.

    Args:
        labels: Labels of the sample.
        group_by: Label key to group on, ``"method + path"`` for the
            combined request grouping, or None for no grouping.

    Returns:
        ``"All"`` without grouping, the label value when present and
        non-empty, otherwise ``"Other"``.
    """
    if not group_by:
        return ALL_GROUP
    if group_by == METHOD_PATH_GROUP:
        method = label_of(labels, "method")
        path = label_of(labels, "path")
        if method and path:
            return f"{method} {path}"
        return method or path or OTHER_GROUP
    return label_of(labels, group_by) or OTHER_GROUP


def parse_le(raw: str) -> float | None:
    """Parse a bucket bound; ``+Inf`` is infinity, garbage is None."""
    if raw == "+Inf":
        return math.inf
    try:
        value = float(raw)
    except ValueError:
        return None
    return None if math.isnan(value) else value


def format_bound(value: float) -> str:
    """Render a bucket bound or percentile the way exposition text writes it."""
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def range_label(bounds: Sequence[float], index: int, unit: str = "s") -> str:
    """Human label for the bucket at ``index`` of ascending ``bounds``."""
    upper = bounds[index]
    previous = format_bound(bounds[index - 1]) if index > 0 else "0"
    if math.isinf(upper):
        return f"> {previous}{unit}"
    if index == 0:
        return f"< {format_bound(upper)}{unit}"
    return f"{previous}-{format_bound(upper)}{unit}"


def exclusive(cumulative: Sequence[float]) -> list[float]:
    """Turn an ascending cumulative series into per-range values.

    Each value is ``cumulative[i] - cumulative[i - 1]`` floored at 0, so
    non-monotonic input never yields negative counts. A non-finite
    difference counts as 0.
    """
    result: list[float] = []
    previous = 0.0
    for value in cumulative:
        diff = value - previous
        result.append(max(0.0, diff) if math.isfinite(diff) else 0.0)
        previous = value
    return result


def _sum_by_le(
    samples: Iterable[Sample], sample_filter: SampleFilter
) -> dict[float, float]:
    buckets: dict[float, float] = {}
    for sample in samples:
        if not has_label(sample.labels, LE_LABEL) or not sample_filter(sample):
            continue
        le = parse_le(sample.labels[LE_LABEL])
        if le is None:
            continue
        buckets[le] = clean(buckets.get(le, 0.0) + sample.value)
    return buckets


def histogram_buckets(
    snapshot: Snapshot | None,
    base_name: str,
    group_by: str | None = None,
    unit: str = "s",
) -> HistogramResult:
    """Reconstruct exclusive bucket counts for a histogram.

    Args:
        snapshot: Snapshot to read ``<base_name>_bucket`` from.
        base_name: Histogram name without the ``_bucket`` suffix.
        group_by: Label to split the histogram by (see :func:`group_key`).
        unit: Suffix appended to range labels.

    Returns:
        Rows ascending by bound with ``+Inf`` last, and the group names
        in first-seen order. Rows where every group is 0 are dropped.
    """
    if snapshot is None:
        return HistogramResult()

    groups: dict[str, dict[float, float]] = {}
    bounds: set[float] = set()
    for sample in snapshot.get(f"{base_name}{BUCKET_SUFFIX}"):
        if not has_label(sample.labels, LE_LABEL):
            continue
        le = parse_le(sample.labels[LE_LABEL])
        if le is None:
            continue
        bounds.add(le)
        cumulative = groups.setdefault(group_key(sample.labels, group_by), {})
        cumulative[le] = clean(cumulative.get(le, 0.0) + sample.value)

    ordered = sorted(bounds)
    per_group = {
        name: exclusive([cumulative.get(le, 0.0) for le in ordered])
        for name, cumulative in groups.items()
    }

    rows = []
    for index, le in enumerate(ordered):
        values = {name: per_group[name][index] for name in groups}
        if any(v > 0 for v in values.values()):
            label = range_label(ordered, index, unit)
            rows.append(HistogramRow(range=label, le=le, values=values))
    return HistogramResult(rows=rows, group_names=list(groups))


def _single_series_rows(
    buckets: Mapping[float, float], unit: str
) -> list[RateRow]:
    ordered = sorted(buckets)
    counts = exclusive([buckets[le] for le in ordered])
    return [
        RateRow(range=range_label(ordered, index, unit), le=le, count=counts[index])
        for index, le in enumerate(ordered)
    ]


def rate_buckets(
    curr: Snapshot | None,
    prev: Snapshot | None,
    base_name: str,
    sample_filter: SampleFilter | None = None,
    elapsed_seconds: float = 0.0,
    epsilon: float = DEFAULT_RATE_EPSILON,
    unit: str = "s",
) -> list[RateRow]:
    """Per-second rate of observations per bucket between two snapshots.

    Cumulative bucket counts are summed per ``le`` (after
    ``sample_filter``) in each snapshot, differenced, divided by the
    elapsed time and then exclusivised. The ``+Inf`` row and rows at or
    below ``epsilon`` are dropped.

    Returns:
        An empty list when either snapshot is missing or
        ``elapsed_seconds`` is not positive.
    """
    if curr is None or prev is None or not elapsed_seconds > 0:
        return []

    accept = sample_filter or _accept_all
    bucket_name = f"{base_name}{BUCKET_SUFFIX}"
    curr_buckets = _sum_by_le(curr.get(bucket_name), accept)
    prev_buckets = _sum_by_le(prev.get(bucket_name), accept)

    rates = {
        le: max(0.0, safe_div(value - prev_buckets.get(le, 0.0), elapsed_seconds))
        for le, value in curr_buckets.items()
    }
    return [
        row
        for row in _single_series_rows(rates, unit)
        if not math.isinf(row.le) and row.count > epsilon
    ]


def cumulative_buckets(
    snapshot: Snapshot | None,
    base_name: str,
    sample_filter: SampleFilter | None = None,
    unit: str = "s",
) -> list[RateRow]:
    """Exclusive bucket counts of one snapshot, as rate-shaped rows.

    Used when no rate can be computed yet. The ``+Inf`` row and empty
    rows are dropped.
    """
    if snapshot is None:
        return []
    buckets = _sum_by_le(
        snapshot.get(f"{base_name}{BUCKET_SUFFIX}"), sample_filter or _accept_all
    )
    return [
        row
        for row in _single_series_rows(buckets, unit)
        if not math.isinf(row.le) and row.count > 0
    ]


def rate_or_cumulative(
    curr: Snapshot | None,
    prev: Snapshot | None,
    base_name: str,
    sample_filter: SampleFilter | None = None,
    elapsed_seconds: float = 0.0,
    epsilon: float = DEFAULT_RATE_EPSILON,
    unit: str = "s",
) -> RateView:
    """Rate rows when there is activity, else the cumulative breakdown."""
    rows = rate_buckets(
        curr, prev, base_name, sample_filter, elapsed_seconds, epsilon, unit
    )
    if rows:
        return RateView(rows=rows, is_rate=True)
    return RateView(rows=cumulative_buckets(curr, base_name, sample_filter, unit))


def percentile_label(quantile: float) -> str:
    """``0.9`` -> ``P90``, ``0.999`` -> ``P99.9``."""
    return f"P{format_bound(round(quantile * 100, 6))}"


def summary_group_key(labels: Mapping[str, str]) -> str:
    """Serialise the non-quantile labels as ``"k: v, k2: v2"``."""
    parts = [f"{k}: {v}" for k, v in labels.items() if k != QUANTILE_LABEL]
    return ", ".join(parts) if parts else GLOBAL_GROUP


def summary_table(
    snapshot: Snapshot | None,
    name: str,
    grouped: bool = True,
    top_n: int = DEFAULT_SUMMARY_TOP_N,
) -> SummaryTable:
    """Pivot summary quantiles into rows keyed by percentile.

    Args:
        snapshot: Snapshot holding the summary series.
        name: Summary metric name.
        grouped: Split columns by label set. When False, one ``"value"``
            column holds the maximum across label sets per quantile.
        top_n: Keep only this many groups, ranked by their maximum value.

    Returns:
        Rows ascending by quantile and the column names in rank order.
    """
    if snapshot is None:
        return SummaryTable()

    groups: dict[str, dict[float, float]] = {}
    peaks: dict[str, float] = {}
    for sample in snapshot.get(name):
        if not has_label(sample.labels, QUANTILE_LABEL):
            continue
        quantile = parse_le(sample.labels[QUANTILE_LABEL])
        if quantile is None:
            continue
        key = summary_group_key(sample.labels) if grouped else COLLAPSED_COLUMN
        cells = groups.setdefault(key, {})
        if grouped:
            cells[quantile] = sample.value
        else:
            cells[quantile] = max(cells.get(quantile, 0.0), sample.value)
        peaks[key] = max(peaks.get(key, 0.0), sample.value)

    quantiles = sorted({q for cells in groups.values() for q in cells})
    ranked = sorted(groups, key=lambda key: peaks[key], reverse=True)[: max(top_n, 0)]

    rows = [
        SummaryRow(
            name=percentile_label(q),
            values={key: groups[key].get(q, 0.0) for key in ranked},
        )
        for q in quantiles
    ]
    return SummaryTable(rows=rows, group_names=ranked)


def summary_averages(
    snapshot: Snapshot | None, name: str, group_by: str | None = None
) -> dict[str, float]:
    """Average observation per group from the ``_sum``/``_count`` series."""
    if snapshot is None:
        return {}
    sums = _totals(snapshot.get(f"{name}{SUM_SUFFIX}"), group_by)
    counts = _totals(snapshot.get(f"{name}{COUNT_SUFFIX}"), group_by)
    return {key: safe_div(total, counts.get(key, 0.0)) for key, total in sums.items()}


def _totals(samples: Iterable[Sample], group_by: str | None) -> dict[str, float]:
    totals: dict[str, float] = {}
    for sample in samples:
        key = group_key(sample.labels, group_by)
        totals[key] = clean(totals.get(key, 0.0) + sample.value)
    return totals


def counter_breakdown(
    snapshot: Snapshot | None, name: str, group_by: str | None = None
) -> list[BreakdownRow]:
    """Sum a counter or gauge per group, largest first."""
    if snapshot is None:
        return []
    totals = _totals(snapshot.get(name), group_by)
    rows = [BreakdownRow(name=key, value=value) for key, value in totals.items()]
    return sorted(rows, key=lambda row: row.value, reverse=True)


def scalar_value(
    snapshot: Snapshot | None,
    name: str,
    label_filters: Mapping[str, str] | None = None,
) -> float:
    """Sum the samples of ``name`` whose labels match every filter exactly."""
    if snapshot is None:
        return 0.0
    filters = label_filters or {}
    total = 0.0
    for sample in snapshot.get(name):
        if all(
            has_label(sample.labels, k) and sample.labels[k] == v
            for k, v in filters.items()
        ):
            total = clean(total + sample.value)
    return total
