"""BDD step definitions for parsing and history features."""

from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when

from promscope.adapters.storage.history import SnapshotHistory
from promscope.core.distribution import (
    counter_breakdown,
    histogram_buckets,
    rate_or_cumulative,
)
from promscope.core.models import Snapshot
from promscope.core.parser import parse_exposition


@dataclass
class ExplorationContext:
    """State shared between the steps of one scenario."""

    text: str = ""
    snapshot: Snapshot | None = None
    history: SnapshotHistory = field(default_factory=SnapshotHistory)


@pytest.fixture
def ctx() -> ExplorationContext:
    """Fresh scenario context for each test."""
    return ExplorationContext()


def _rows(datatable: list[list[str]]) -> list[dict[str, str]]:
    header, *body = datatable
    return [dict(zip(header, row, strict=True)) for row in body]


# === Parsing ===
@given("the exposition text:")
def step_exposition_text(ctx: ExplorationContext, docstring: str) -> None:
    ctx.text = docstring


@when("the text is parsed")
def step_parse(ctx: ExplorationContext) -> None:
    ctx.snapshot = parse_exposition(ctx.text, timestamp=0)


@then(parsers.parse('the snapshot has metric "{name}" with value {value:g}'))
def step_has_metric(ctx: ExplorationContext, name: str, value: float) -> None:
    assert [s.value for s in ctx.snapshot.get(name)] == [value]


@then(parsers.parse('the snapshot has no metric "{name}"'))
def step_has_no_metric(ctx: ExplorationContext, name: str) -> None:
    assert not ctx.snapshot.has(name)


@then(parsers.parse('grouping "{name}" by "{label}" gives:'))
def step_grouping(
    ctx: ExplorationContext, name: str, label: str, datatable: list[list[str]]
) -> None:
    rows = counter_breakdown(ctx.snapshot, name, label)
    expected = [(r["name"], float(r["value"])) for r in _rows(datatable)]
    assert [(row.name, row.value) for row in rows] == expected


@then(parsers.parse('the histogram "{name}" has rows:'))
def step_histogram_rows(
    ctx: ExplorationContext, name: str, datatable: list[list[str]]
) -> None:
    result = histogram_buckets(ctx.snapshot, name)
    expected = [(r["range"], float(r["count"])) for r in _rows(datatable)]
    assert [(row.range, row.values["All"]) for row in result.rows] == expected


# === History ===
@given("an empty snapshot history")
def step_empty_history(ctx: ExplorationContext) -> None:
    ctx.history = SnapshotHistory()


@when(parsers.parse("{n:d} snapshots are appended"))
def step_append_n(ctx: ExplorationContext, n: int) -> None:
    for number in range(1, n + 1):
        ctx.history.append(number, Snapshot(timestamp=number))


@when(
    parsers.parse(
        'a scrape with bucket "{name}" le "{le}" count {count:d} arrives at {ts:d} ms'
    )
)
def step_scrape(ctx: ExplorationContext, name: str, le: str, count: int, ts: int) -> None:
    text = f'{name}_bucket{{le="{le}"}} {count}\n{name}_bucket{{le="+Inf"}} {count}'
    ctx.history.append(ts, parse_exposition(text, timestamp=ts))


@then(parsers.parse("the history holds {n:d} snapshots"))
def step_history_len(ctx: ExplorationContext, n: int) -> None:
    assert len(ctx.history) == n


@then(parsers.parse("the oldest snapshot is number {n:d}"))
def step_oldest(ctx: ExplorationContext, n: int) -> None:
    assert next(iter(ctx.history)).timestamp == n


@then(parsers.parse('the rate of "{name}" in range "{label}" is {rate:g} per second'))
def step_rate(ctx: ExplorationContext, name: str, label: str, rate: float) -> None:
    view = rate_or_cumulative(
        ctx.history.current(),
        ctx.history.previous(),
        name,
        elapsed_seconds=ctx.history.elapsed_seconds(),
    )
    assert view.is_rate
    assert {row.range: row.count for row in view.rows}[label] == rate


@then(parsers.parse('the rate view of "{name}" is cumulative with count {count:d}'))
def step_cumulative(ctx: ExplorationContext, name: str, count: int) -> None:
    view = rate_or_cumulative(ctx.history.current(), ctx.history.previous(), name)
    assert not view.is_rate
    assert [row.count for row in view.rows] == [count]
