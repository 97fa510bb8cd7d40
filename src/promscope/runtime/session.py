"""Explorer session tying parsing, history, polling and views together.

One session corresponds to one dashboard: it owns the snapshot history,
optionally drives a poller, and answers view queries against the newest
(and, for rates, second-newest) snapshot.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any

from promscope.adapters.poller import MetricsPoller, PollerState
from promscope.adapters.storage.history import SnapshotHistory
from promscope.core import distribution
from promscope.core.catalog import (
    available_labels,
    build_catalog,
    classify,
    find_entry,
    infer_type,
)
from promscope.core.config import DEFAULT_CONFIG, ExplorerConfig
from promscope.core.exceptions import ManualParseFailure
from promscope.core.models import (
    BreakdownRow,
    CatalogGroup,
    Classification,
    HistogramResult,
    RateView,
    Sample,
    Snapshot,
    SummaryTable,
)
from promscope.core.parser import parse_exposition
from promscope.core.ports import ExpositionSourcePort
from promscope.core.widgets import WidgetView, compute_widget_view

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExplorerSession:
    """A dashboard session over a rolling window of snapshots.

    Example:
        ```python
        session = ExplorerSession()
        session.ingest_manual(open("metrics.txt").read())
        session.histogram("http_request_duration_seconds", group_by="method")
        ```
    """

    def __init__(
        self,
        config: ExplorerConfig = DEFAULT_CONFIG,
        history: SnapshotHistory | None = None,
    ) -> None:
        self.config = config
        self.history = history or SnapshotHistory(config.history_capacity)
        self.poller: MetricsPoller | None = None

    # --- ingestion ---

    def ingest(self, text: str, timestamp: int | None = None) -> Snapshot:
        """Parse exposition text and append it to the history."""
        ts = _now_ms() if timestamp is None else timestamp
        snapshot = parse_exposition(text, ts)
        self.history.append(ts, snapshot)
        logger.debug(
            "Ingested snapshot at %d with %d metrics", ts, len(snapshot.series)
        )
        return snapshot

    def ingest_manual(self, text: str, timestamp: int | None = None) -> Snapshot:
        """Ingest pasted or file-loaded text.

        Raises:
            ManualParseFailure: Parsing failed as a whole. Individual
                malformed lines are skipped and never raise.
        """
        try:
            return self.ingest(text, timestamp)
        except Exception as exc:
            logger.exception("Manual parse failed")
            raise ManualParseFailure() from exc

    # --- polling ---

    def start_polling(self, source: ExpositionSourcePort) -> MetricsPoller:
        """Start polling ``source`` on the running event loop."""
        if self.poller is not None and self.poller.running:
            return self.poller
        self.poller = MetricsPoller(
            source,
            on_text=self.ingest,
            interval_seconds=self.config.poll_interval_seconds,
        )
        self.poller.start()
        return self.poller

    async def stop_polling(self) -> None:
        if self.poller is not None:
            await self.poller.stop()

    @property
    def polling_state(self) -> PollerState:
        return self.poller.state if self.poller is not None else PollerState.IDLE

    def status(self) -> dict[str, Any]:
        """Summary of the session state for status displays."""
        failure = self.poller.last_failure if self.poller is not None else None
        current = self.history.current()
        return {
            "state": self.polling_state.value,
            "snapshots": len(self.history),
            "last_timestamp": current.timestamp if current is not None else None,
            "elapsed_seconds": self.history.elapsed_seconds(),
            "error": str(failure) if failure is not None else None,
            "error_type": failure.kind if failure is not None else None,
            "error_title": failure.title if failure is not None else None,
        }

    # --- views over the current snapshot ---

    @property
    def current(self) -> Snapshot | None:
        return self.history.current()

    def discover(self) -> Classification:
        current = self.current
        return classify(current) if current is not None else Classification()

    def catalog(self) -> list[CatalogGroup]:
        current = self.current
        if current is None:
            return []
        return build_catalog(current.metadata, current, self.config)

    def labels(self, name: str) -> list[str]:
        current = self.current
        return available_labels(current, name) if current is not None else []

    def histogram(self, name: str, group_by: str | None = None) -> HistogramResult:
        return distribution.histogram_buckets(self.current, name, group_by)

    def rate(
        self,
        name: str,
        label_filters: Mapping[str, str] | None = None,
        contains: tuple[str, str] | None = None,
    ) -> RateView:
        """Rate distribution of a histogram with the cumulative fallback.

        Args:
            name: Histogram base name.
            label_filters: Exact label matches a sample must satisfy.
            contains: ``(label, substring)`` a sample's label must contain.
        """
        filters = dict(label_filters or {})

        def accept(sample: Sample) -> bool:
            if any(sample.labels.get(k) != v for k, v in filters.items()):
                return False
            if contains is not None:
                key, needle = contains
                return needle in sample.labels.get(key, "")
            return True

        return distribution.rate_or_cumulative(
            self.current,
            self.history.previous(),
            name,
            accept,
            self.history.elapsed_seconds(),
            epsilon=self.config.rate_epsilon,
        )

    def summary(self, name: str, grouped: bool = True) -> SummaryTable:
        return distribution.summary_table(
            self.current, name, grouped, top_n=self.config.summary_top_n
        )

    def counter(
        self, name: str, group_by: str | None = None
    ) -> list[BreakdownRow]:
        return distribution.counter_breakdown(self.current, name, group_by)

    def scalar(self, name: str, label_filters: Mapping[str, str] | None = None) -> float:
        return distribution.scalar_value(self.current, name, label_filters)

    def widget(self, name: str, group_by: str | None = None) -> WidgetView:
        """Widget view for ``name`` using its catalog type."""
        current = self.current
        if current is None:
            return WidgetView()
        entry = find_entry(self.catalog(), name)
        if entry is not None:
            metric_type = entry.type
        else:
            meta = current.metadata.get(name)
            metric_type = infer_type(current, name, meta.type if meta else "untyped")
        return compute_widget_view(current, name, metric_type, group_by)
