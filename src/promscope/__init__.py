"""Explore Prometheus exposition text as chart-ready distributions."""

from promscope.adapters.storage import SnapshotHistory
from promscope.core.catalog import build_catalog, classify
from promscope.core.config import ExplorerConfig, ExplorerSettings
from promscope.core.distribution import (
    counter_breakdown,
    histogram_buckets,
    rate_buckets,
    rate_or_cumulative,
    scalar_value,
    summary_table,
)
from promscope.core.exceptions import (
    FetchFailure,
    ManualParseFailure,
    PromscopeError,
)
from promscope.core.models import MetricMeta, Sample, Snapshot
from promscope.core.parser import parse_exposition
from promscope.runtime.session import ExplorerSession

__all__ = [
    "ExplorerConfig",
    "ExplorerSettings",
    "ExplorerSession",
    "FetchFailure",
    "ManualParseFailure",
    "MetricMeta",
    "PromscopeError",
    "Sample",
    "Snapshot",
    "SnapshotHistory",
    "build_catalog",
    "classify",
    "counter_breakdown",
    "histogram_buckets",
    "parse_exposition",
    "rate_buckets",
    "rate_or_cumulative",
    "scalar_value",
    "summary_table",
]
