"""Tests for the exposition text parser."""

import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from promscope.core.parser import (
    parse_exposition,
    parse_labels,
    parse_value,
    unescape_label_value,
)


class TestParseValue:
    """Tests for sample value parsing."""

    @pytest.mark.core
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("10", 10.0),
            ("1.5e3", 1500.0),
            ("-0.25", -0.25),
            ("+Inf", math.inf),
            ("Inf", math.inf),
            ("-Inf", -math.inf),
        ],
    )
    def test_parses_numbers_and_infinities(self, token: str, expected: float) -> None:
        """Numbers and infinity literals parse to their float value."""
        assert parse_value(token) == expected

    @pytest.mark.core
    @pytest.mark.parametrize("token", ["NaN", "e", "..", "aN"])
    def test_nan_and_garbage_become_zero(self, token: str) -> None:
        """NaN and unparsable tokens fall back to 0."""
        assert parse_value(token) == 0.0

    @pytest.mark.core
    @pytest.mark.parametrize(
        ("token", "expected"),
        [("1.5e", 1.5), ("12-3", 12.0), ("1.2.3", 1.2), ("5.", 5.0), (".5", 0.5)],
    )
    def test_uses_leading_number(self, token: str, expected: float) -> None:
        """Trailing junk after a number is ignored."""
        assert parse_value(token) == expected


class TestParseLabels:
    """Tests for label block parsing."""

    @pytest.mark.core
    def test_extracts_pairs(self) -> None:
        """Key/value pairs are extracted in order."""
        assert parse_labels('method="GET",path="/a"') == {"method": "GET", "path": "/a"}

    @pytest.mark.core
    def test_unescapes_quotes_backslashes_and_newlines(self) -> None:
        """Escaped quote, backslash and newline are restored."""
        labels = parse_labels(r'msg="say \"hi\"",dir="C:\\tmp",text="a\nb"')

        assert labels == {"msg": 'say "hi"', "dir": "C:\\tmp", "text": "a\nb"}

    @pytest.mark.core
    def test_unescape_order_is_quote_backslash_newline(self) -> None:
        r"""An escaped backslash followed by ``n`` becomes a newline."""
        assert unescape_label_value(r"a\\nb") == "a\nb"

    @pytest.mark.core
    def test_ignores_stray_text(self) -> None:
        """Text that is not a quoted pair is skipped."""
        assert parse_labels('junk, a="1" ,, b=2') == {"a": "1"}


class TestParseExposition:
    """Tests for whole-document parsing."""

    @pytest.mark.core
    def test_parses_samples_and_metadata(self, snapshot) -> None:
        """HELP/TYPE lines populate metadata and data lines populate series."""
        meta = snapshot.metadata["http_requests_total"]

        assert meta.help == "Total HTTP requests."
        assert meta.type == "counter"
        assert [s.value for s in snapshot.get("http_requests_total")] == [10.0, 5.0]
        assert snapshot.get("go_goroutines")[0].labels == {}

    @pytest.mark.core
    def test_uses_given_timestamp(self, snapshot) -> None:
        """The caller's timestamp stamps the snapshot."""
        assert snapshot.timestamp == 1_000

    @pytest.mark.core
    def test_defaults_timestamp_to_now(self) -> None:
        """Without a timestamp the snapshot is stamped with the current time."""
        result = parse_exposition("up 1")

        assert result.timestamp > 1_600_000_000_000

    @pytest.mark.core
    def test_ignores_embedded_sample_timestamp(self) -> None:
        """A trailing sample timestamp is accepted but not stored."""
        result = parse_exposition("up 1 1700000000000", timestamp=5)

        assert result.get("up")[0].value == 1.0
        assert result.timestamp == 5

    @pytest.mark.core
    def test_type_is_case_insensitive_and_lowercased(self) -> None:
        """TYPE values are matched case-insensitively and stored lower-case."""
        result = parse_exposition("# TYPE foo COUNTER\nfoo 1", timestamp=0)

        assert result.metadata["foo"].type == "counter"

    @pytest.mark.core
    def test_help_without_space_after_hash(self) -> None:
        """Whitespace after ``#`` is optional."""
        result = parse_exposition("#HELP foo Some help", timestamp=0)

        assert result.metadata["foo"].help == "Some help"

    @pytest.mark.core
    def test_skips_malformed_line_and_keeps_parsing(self) -> None:
        """An unterminated label block is skipped; later lines still parse."""
        text = 'weird_metric{bad 1\nok_metric{a="b"} 2\n'

        result = parse_exposition(text, timestamp=0)

        assert not result.has("weird_metric")
        assert result.get("ok_metric")[0].value == 2.0

    @pytest.mark.core
    def test_nan_value_is_stored_as_zero(self) -> None:
        """A NaN sample value is stored as 0, never NaN."""
        result = parse_exposition("go_memstats_alloc_bytes NaN", timestamp=0)

        assert result.get("go_memstats_alloc_bytes")[0].value == 0.0

    @pytest.mark.core
    def test_comments_and_blank_lines_ignored(self) -> None:
        """Plain comments and blank lines produce nothing."""
        result = parse_exposition("# just a comment\n\n   \n", timestamp=0)

        assert result.series == {}
        assert result.metadata == {}

    @pytest.mark.core
    def test_metadata_without_samples_is_kept(self) -> None:
        """HELP for a metric with no samples creates metadata only."""
        result = parse_exposition("# HELP lonely Nobody home", timestamp=0)

        assert result.metadata["lonely"].help == "Nobody home"
        assert not result.has("lonely")

    @pytest.mark.core
    def test_empty_input_yields_empty_snapshot(self) -> None:
        """Empty text parses to an empty snapshot."""
        result = parse_exposition("", timestamp=0)

        assert result.names() == []

    @pytest.mark.core
    def test_handles_crlf_line_endings(self) -> None:
        """Trailing carriage returns are trimmed with the line."""
        result = parse_exposition("a 1\r\nb 2\r\n", timestamp=0)

        assert result.get("a")[0].value == 1.0
        assert result.get("b")[0].value == 2.0


_METRIC_NAMES = st.from_regex(r"[a-zA-Z_:][a-zA-Z0-9_:]*", fullmatch=True)
_LABEL_NAMES = st.from_regex(r"[a-zA-Z_][a-zA-Z0-9_]*", fullmatch=True)
_LABEL_VALUES = st.text(
    alphabet=st.one_of(
        st.characters(
            categories=("L", "N", "P", "S", "Zs"), exclude_characters="\\}"
        ),
        st.just("\n"),
    ),
    max_size=20,
)


def _escape(value: str) -> str:
    return value.replace('"', '\\"').replace("\n", "\\n")


def _render_line(name: str, labels: dict[str, str], value: float) -> str:
    if not labels:
        return f"{name} {value!r}"
    pairs = ",".join(f'{key}="{_escape(val)}"' for key, val in labels.items())
    return f"{name}{{{pairs}}} {value!r}"


class TestParseExpositionPropertyBased:
    """Property-based tests for parse_exposition."""

    @pytest.mark.core
    @pytest.mark.tier(0)
    @given(
        name=_METRIC_NAMES,
        labels=st.dictionaries(_LABEL_NAMES, _LABEL_VALUES, max_size=4),
        value=st.floats(allow_nan=False, allow_infinity=False),
    )
    def test_rendered_sample_roundtrips(
        self, name: str, labels: dict[str, str], value: float
    ) -> None:
        """Any well-formed sample line parses back to its name, labels and value."""
        snapshot = parse_exposition(_render_line(name, labels, value), timestamp=0)

        assert snapshot.names() == [name]
        [sample] = snapshot.get(name)
        assert sample.labels == labels
        assert sample.value == value

    @pytest.mark.core
    @pytest.mark.tier(0)
    @given(text=st.text(max_size=200))
    def test_arbitrary_text_never_raises_or_stores_nan(self, text: str) -> None:
        """Any input parses without raising and holds no NaN values."""
        snapshot = parse_exposition(text, timestamp=0)

        for name in snapshot.names():
            assert all(not math.isnan(s.value) for s in snapshot.get(name))
