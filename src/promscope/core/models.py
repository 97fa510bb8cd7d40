"""Core domain models for parsed exposition data and derived views."""

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

LE_LABEL = "le"
QUANTILE_LABEL = "quantile"
RESERVED_LABELS = frozenset({LE_LABEL, QUANTILE_LABEL})

METRIC_TYPES = ("counter", "gauge", "histogram", "summary", "untyped")


def has_label(labels: Mapping[str, str], key: str) -> bool:
    """Return True if the label set carries ``key``."""
    return key in labels


def label_of(labels: Mapping[str, str], key: str, default: str = "") -> str:
    """Return the value of ``key`` or ``default`` when the label is absent."""
    return labels.get(key, default)


@dataclass(frozen=True)
class Sample:
    """A single parsed sample.

    Attributes:
        labels: Label key/value pairs in the order they appeared.
        value: Sample value. May be +/-inf, never NaN.
    """

    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0


@dataclass
class MetricMeta:
    """HELP/TYPE metadata for a metric family.

    Attributes:
        help: Free-text description from the ``# HELP`` directive.
        type: One of counter, gauge, histogram, summary, untyped.
    """

    help: str = ""
    type: str = "untyped"


@dataclass(frozen=True)
class Snapshot:
    """One point-in-time capture of all parsed series.

    Attributes:
        timestamp: Capture time in milliseconds since the epoch.
        series: Metric name to its samples. Lists are never empty.
        metadata: HELP/TYPE metadata keyed by metric (base) name.
    """

    timestamp: int
    series: dict[str, list[Sample]] = field(default_factory=dict)
    metadata: dict[str, MetricMeta] = field(default_factory=dict)

    def get(self, name: str) -> list[Sample]:
        """Return the samples for ``name``, or an empty list."""
        return self.series.get(name, [])

    def has(self, name: str) -> bool:
        return name in self.series

    def names(self) -> list[str]:
        return list(self.series)


@dataclass(frozen=True)
class Classification:
    """Metric names discovered in a snapshot, split by chart kind."""

    histograms: list[str] = field(default_factory=list)
    summaries: list[str] = field(default_factory=list)
    counters: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CatalogEntry:
    """A browsable metric in the catalog.

    Attributes:
        name: Base metric name.
        help: HELP text or empty string.
        type: Declared or inferred metric type.
        labels: Label keys seen on the metric, excluding ``le``/``quantile``.
    """

    name: str
    help: str
    type: str
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class CatalogGroup:
    """Catalog entries sharing a name prefix."""

    prefix: str
    metrics: list[CatalogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "prefix": self.prefix,
            "metrics": [
                {**asdict(entry), "labels": list(entry.labels)}
                for entry in self.metrics
            ],
        }


@dataclass(frozen=True)
class HistogramRow:
    """One bucket range of a histogram breakdown.

    Attributes:
        range: Human-readable range label (e.g. ``0.1-0.5s``).
        le: Upper bound of the bucket; ``inf`` for the ``+Inf`` bucket.
        values: Exclusive count per group name.
    """

    range: str
    le: float
    values: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class HistogramResult:
    rows: list[HistogramRow] = field(default_factory=list)
    group_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [
                {
                    "range": row.range,
                    "le": _json_number(row.le),
                    "values": dict(row.values),
                }
                for row in self.rows
            ],
            "keys": list(self.group_names),
        }


@dataclass(frozen=True)
class RateRow:
    """One bucket range of a single-series distribution (rate or count)."""

    range: str
    le: float
    count: float


@dataclass(frozen=True)
class RateView:
    """Distribution rows plus whether they are per-second rates.

    Attributes:
        rows: Exclusive per-range rows.
        is_rate: True when ``rows`` came from two snapshots, False when
            they are the cumulative fallback from the current snapshot.
    """

    rows: list[RateRow] = field(default_factory=list)
    is_rate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [
                {"range": r.range, "le": _json_number(r.le), "count": r.count}
                for r in self.rows
            ],
            "is_rate": self.is_rate,
        }


@dataclass(frozen=True)
class SummaryRow:
    name: str
    values: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SummaryTable:
    """Quantile rows pivoted against group columns."""

    rows: list[SummaryRow] = field(default_factory=list)
    group_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [
                {"name": row.name, "values": dict(row.values)} for row in self.rows
            ],
            "keys": list(self.group_names),
        }


@dataclass(frozen=True)
class BreakdownRow:
    name: str
    value: float


def _json_number(value: float) -> float | str:
    """Render infinities as the exposition literals for JSON output."""
    if value == float("inf"):
        return "+Inf"
    if value == float("-inf"):
        return "-Inf"
    return value


def to_jsonable(value: Any) -> Any:
    """Recursively replace non-finite floats so the result is strict JSON.

    Infinities become the exposition literals ``"+Inf"``/``"-Inf"`` and
    NaN becomes ``None``.
    """
    if isinstance(value, float):
        if math.isnan(value):
            return None
        return _json_number(value)
    if isinstance(value, Mapping):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_jsonable(item) for item in value]
    return value
