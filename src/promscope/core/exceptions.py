"""Exceptions raised at the edges of promscope.

The parser and the distribution engine never raise for bad input; they
return empty results instead. Only the fetch boundary and the manual
paste path surface failures to callers.
"""

FETCH_FAILURE_KINDS = ("timeout", "cors", "http", "network", "parse")

_TITLES = {
    "cors": "Connection Blocked (CORS/Network)",
    "timeout": "Request Timeout",
    "http": "HTTP Error",
}


class PromscopeError(Exception):
    """Base class for all promscope errors."""


class FetchFailure(PromscopeError):
    """A polling cycle failed to deliver exposition text.

    Attributes:
        kind: One of timeout, cors, http, network, parse.
        message: User-facing description of the last error.
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, kind: str, message: str, attempts: int = 1) -> None:
        if kind not in FETCH_FAILURE_KINDS:
            raise ValueError(f"Unknown fetch failure kind: {kind!r}")
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.attempts = attempts

    @property
    def title(self) -> str:
        """Short heading for the failure, suitable for an error banner."""
        return _TITLES.get(self.kind, "Connection Error")

    def __str__(self) -> str:
        if self.attempts > 1:
            return f"{self.message} (after {self.attempts} attempts)"
        return self.message


class ManualParseFailure(FetchFailure):
    """Parsing pasted or file-loaded text failed as a whole."""

    def __init__(self, message: str = "Failed to parse input text") -> None:
        super().__init__("parse", message)
