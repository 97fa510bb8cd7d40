"""Tests for promscope exceptions."""

import pytest

from promscope.core.exceptions import (
    FetchFailure,
    ManualParseFailure,
    PromscopeError,
)


class TestFetchFailure:
    """Tests for FetchFailure."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("kind", "title"),
        [
            ("cors", "Connection Blocked (CORS/Network)"),
            ("timeout", "Request Timeout"),
            ("http", "HTTP Error"),
            ("network", "Connection Error"),
            ("parse", "Connection Error"),
        ],
    )
    def test_titles(self, kind: str, title: str) -> None:
        """Each kind maps to a user-facing heading."""
        assert FetchFailure(kind, "boom").title == title

    @pytest.mark.unit
    def test_rejects_unknown_kind(self) -> None:
        """Unknown kinds are a programming error."""
        with pytest.raises(ValueError):
            FetchFailure("dns", "boom")

    @pytest.mark.unit
    def test_str_mentions_attempts(self) -> None:
        """The message notes the attempt count after retries."""
        assert str(FetchFailure("http", "HTTP error! status: 503", 5)) == (
            "HTTP error! status: 503 (after 5 attempts)"
        )
        assert str(FetchFailure("http", "HTTP error! status: 503")) == (
            "HTTP error! status: 503"
        )

    @pytest.mark.unit
    def test_is_promscope_error(self) -> None:
        """FetchFailure is catchable as PromscopeError."""
        with pytest.raises(PromscopeError):
            raise FetchFailure("network", "boom")


class TestManualParseFailure:
    """Tests for ManualParseFailure."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """The default message and kind describe a failed paste."""
        failure = ManualParseFailure()

        assert failure.kind == "parse"
        assert str(failure) == "Failed to parse input text"
        assert isinstance(failure, FetchFailure)
