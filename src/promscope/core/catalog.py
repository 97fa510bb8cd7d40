"""Metric classification, catalog building and selection reconciliation."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from promscope.core.config import DEFAULT_CONFIG, ExplorerConfig
from promscope.core.models import (
    QUANTILE_LABEL,
    RESERVED_LABELS,
    CatalogEntry,
    CatalogGroup,
    Classification,
    MetricMeta,
    Sample,
    Snapshot,
    has_label,
)

BUCKET_SUFFIX = "_bucket"
SUM_SUFFIX = "_sum"
COUNT_SUFFIX = "_count"

METHOD_PATH_GROUP = "method + path"


def _has_quantiles(samples: Sequence[Sample]) -> bool:
    return any(has_label(s.labels, QUANTILE_LABEL) for s in samples)


def classify(snapshot: Snapshot) -> Classification:
    """Split the metric names of a snapshot into chart kinds.

    ``*_bucket`` names become histogram base names, names whose samples
    carry a ``quantile`` label become summaries, and everything else is
    treated as a counter/gauge.
    """
    histograms: set[str] = set()
    summaries: set[str] = set()
    counters: set[str] = set()

    for name, samples in snapshot.series.items():
        if name.endswith(BUCKET_SUFFIX):
            histograms.add(name.removesuffix(BUCKET_SUFFIX))
        elif _has_quantiles(samples):
            summaries.add(name)
        else:
            counters.add(name)

    return Classification(
        histograms=sorted(histograms),
        summaries=sorted(summaries),
        counters=sorted(counters),
    )


def base_name(name: str, metadata: Mapping[str, MetricMeta]) -> str:
    """Collapse a histogram/summary family member onto its base name.

    ``_bucket`` is always stripped. ``_sum``/``_count`` are only stripped
    when metadata exists for the stripped name, since plain counters
    commonly end in ``_count`` too.
    """
    if name.endswith(BUCKET_SUFFIX):
        return name.removesuffix(BUCKET_SUFFIX)
    for suffix in (COUNT_SUFFIX, SUM_SUFFIX):
        if name.endswith(suffix) and name.removesuffix(suffix) in metadata:
            return name.removesuffix(suffix)
    return name


def grouping_prefix(name: str, config: ExplorerConfig = DEFAULT_CONFIG) -> str:
    """Return the catalog prefix a metric name is filed under."""
    parts = name.split("_")
    if parts[0] in config.two_token_prefixes and len(parts) > 1:
        return f"{parts[0]}_{parts[1]}"
    return parts[0]


def available_labels(snapshot: Snapshot, name: str) -> list[str]:
    """Label keys on ``name`` (or ``name_bucket``), minus ``le``/``quantile``.

    Keys are returned in first-seen order.
    """
    samples = snapshot.get(name) or snapshot.get(f"{name}{BUCKET_SUFFIX}")
    keys: dict[str, None] = {}
    for sample in samples:
        for key in sample.labels:
            if key not in RESERVED_LABELS:
                keys.setdefault(key, None)
    return list(keys)


def infer_type(snapshot: Snapshot, name: str, declared: str = "untyped") -> str:
    """Return the declared type, re-deriving it from data when untyped."""
    if declared != "untyped":
        return declared
    if snapshot.has(f"{name}{BUCKET_SUFFIX}"):
        return "histogram"
    if _has_quantiles(snapshot.get(name)):
        return "summary"
    return declared


def build_catalog(
    metadata: Mapping[str, MetricMeta],
    snapshot: Snapshot,
    config: ExplorerConfig = DEFAULT_CONFIG,
) -> list[CatalogGroup]:
    """Group the metrics of a snapshot into browsable prefix buckets.

    Args:
        metadata: HELP/TYPE metadata, usually ``snapshot.metadata``.
        snapshot: Parsed snapshot.
        config: Supplies the two-token prefix table.

    Returns:
        Catalog groups sorted by prefix, each with entries sorted by name.
    """
    groups: dict[str, list[CatalogEntry]] = {}
    seen: set[str] = set()

    for name in snapshot.series:
        base = base_name(name, metadata)
        if base in seen:
            continue
        seen.add(base)

        meta = metadata.get(base) or metadata.get(name) or MetricMeta()
        entry = CatalogEntry(
            name=base,
            help=meta.help,
            type=infer_type(snapshot, base, meta.type),
            labels=tuple(available_labels(snapshot, base)),
        )
        groups.setdefault(grouping_prefix(base, config), []).append(entry)

    return [
        CatalogGroup(prefix=prefix, metrics=sorted(entries, key=lambda e: e.name))
        for prefix, entries in sorted(groups.items())
    ]


def find_entry(catalog: Sequence[CatalogGroup], name: str) -> CatalogEntry | None:
    """Look up a catalog entry by base name."""
    for group in catalog:
        for entry in group.metrics:
            if entry.name == name:
                return entry
    return None


@dataclass(frozen=True)
class Selection:
    """The metric and group-by a chart is currently showing.

    ``group_by`` of None means no grouping ("All").
    """

    metric: str = ""
    group_by: str | None = None


def reconcile_selection(
    selection: Selection,
    candidates: Sequence[str],
    labels: Sequence[str],
) -> Selection:
    """Keep a selection valid against freshly discovered metrics.

    A metric that disappeared is replaced by the first candidate, and a
    group-by label that is no longer available is reset to no grouping.
    The special ``"method + path"`` grouping survives while both labels
    exist.
    """
    metric = selection.metric
    if metric not in candidates:
        metric = candidates[0] if candidates else ""

    group_by = selection.group_by
    if group_by is not None:
        if group_by == METHOD_PATH_GROUP:
            valid = "method" in labels and "path" in labels
        else:
            valid = group_by in labels
        if not valid or metric != selection.metric:
            group_by = None

    return Selection(metric=metric, group_by=group_by)

