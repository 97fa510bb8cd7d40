"""Prometheus text exposition parser.

Turns raw exposition text into a :class:`Snapshot`. The parser is total:
malformed lines are skipped rather than raised, so a partially broken
scrape still yields every line that could be read.
"""

import logging
import math
import re
import time

from promscope.core.models import MetricMeta, Sample, Snapshot

logger = logging.getLogger(__name__)

_NAME = r"[a-zA-Z_:][a-zA-Z0-9_:]*"

_HELP_RE = re.compile(rf"^#\s*HELP\s+({_NAME})\s+(.*)$")
_TYPE_RE = re.compile(
    rf"^#\s*TYPE\s+({_NAME})\s+(counter|gauge|histogram|summary|untyped)$",
    re.IGNORECASE,
)
_DATA_RE = re.compile(
    rf"^({_NAME})(?:\{{([^}}]*)\}})?\s+([0-9eE.+\-NaInf]+)(?:\s+([0-9]+))?$"
)
_LABEL_RE = re.compile(r'([a-zA-Z_][a-zA-Z0-9_]*)="((?:[^"\\]|\\.)*)"')
_NUMBER_PREFIX_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def unescape_label_value(raw: str) -> str:
    r"""Undo exposition escaping: ``\"`` then ``\\`` then ``\n``."""
    return raw.replace('\\"', '"').replace("\\\\", "\\").replace("\\n", "\n")


def parse_labels(label_str: str) -> dict[str, str]:
    """Extract ``key="value"`` pairs from the inside of a label block.

    Anything between pairs (commas, stray text) is ignored.
    """
    return {
        match.group(1): unescape_label_value(match.group(2))
        for match in _LABEL_RE.finditer(label_str)
    }


def parse_value(token: str) -> float:
    """Parse a sample value token, mapping NaN and garbage to 0.

    The longest leading number is used, so ``1.5e`` reads as 1.5 and
    ``12-3`` as 12.
    """
    match = _NUMBER_PREFIX_RE.match(token)
    if match is None:
        if token in ("+Inf", "Inf"):
            return math.inf
        if token == "-Inf":
            return -math.inf
        return 0.0
    return float(match.group(0))


def _meta(metadata: dict[str, MetricMeta], name: str) -> MetricMeta:
    if name not in metadata:
        metadata[name] = MetricMeta()
    return metadata[name]


def parse_exposition(text: str, timestamp: int | None = None) -> Snapshot:
    """Parse exposition text into a snapshot.

    Args:
        text: Raw Prometheus text exposition.
        timestamp: Snapshot time in ms since the epoch. Defaults to now;
            per-sample timestamps in the text are ignored.

    Returns:
        Snapshot with series and HELP/TYPE metadata. Metrics with no
        parsable sample are absent from ``series``.
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)

    series: dict[str, list[Sample]] = {}
    metadata: dict[str, MetricMeta] = {}

    for lineno, line in enumerate(text.split("\n"), start=1):
        trimmed = line.strip()
        if not trimmed:
            continue

        help_match = _HELP_RE.match(trimmed)
        if help_match:
            _meta(metadata, help_match.group(1)).help = help_match.group(2)
            continue

        type_match = _TYPE_RE.match(trimmed)
        if type_match:
            _meta(metadata, type_match.group(1)).type = type_match.group(2).lower()
            continue

        if trimmed.startswith("#"):
            continue

        data_match = _DATA_RE.match(trimmed)
        if data_match is None:
            logger.debug("Skipping unparsable line %d: %.80s", lineno, trimmed)
            continue

        name, label_str, value_str, _sample_ts = data_match.groups()
        labels = parse_labels(label_str) if label_str else {}
        series.setdefault(name, []).append(
            Sample(labels=labels, value=parse_value(value_str))
        )

    return Snapshot(timestamp=timestamp, series=series, metadata=metadata)
