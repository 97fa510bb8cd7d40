"""Query parameter parsing shared by the HTTP adapters.

Every parser is lenient: a missing or malformed value falls back to the
default instead of failing the request.
"""

NO_GROUPING = {"", "none"}
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _first(params: dict[str, list[str]], key: str) -> str | None:
    values = params.get(key)
    return values[0] if values else None


def _parse_name_param(params: dict[str, list[str]]) -> str:
    """Return the ``name`` parameter stripped of whitespace, or ``""``."""
    return (_first(params, "name") or "").strip()


def _parse_group_by_param(params: dict[str, list[str]]) -> str | None:
    """Parse the ``group_by`` parameter; ``none`` or empty means no grouping."""
    raw = _first(params, "group_by")
    if raw is None or raw.strip().lower() in NO_GROUPING:
        return None
    return raw.strip()


def _parse_bool_param(
    params: dict[str, list[str]], key: str, default: bool = True
) -> bool:
    """Parse a boolean flag, returning ``default`` for unrecognised values."""
    raw = (_first(params, key) or "").strip().lower()
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    return default


def _parse_label_filters(params: dict[str, list[str]]) -> dict[str, str]:
    """Parse repeated ``label=key:value`` parameters into exact-match filters.

    Entries without a ``:`` or with an empty key are ignored.
    """
    filters: dict[str, str] = {}
    for raw in params.get("label", []):
        key, sep, value = raw.partition(":")
        if sep and key.strip():
            filters[key.strip()] = value
    return filters


def _parse_contains_param(params: dict[str, list[str]]) -> tuple[str, str] | None:
    """Parse ``path_contains`` into a ``("path", substring)`` filter."""
    raw = _first(params, "path_contains")
    if not raw:
        return None
    return "path", raw


def _parse_timestamp_param(params: dict[str, list[str]]) -> int | None:
    """Parse the ``timestamp`` parameter (ms since epoch).

    Rejects negative, NaN and infinite values, returning None so the
    current time is used instead.
    """
    try:
        value = float(_first(params, "timestamp") or "")
    except ValueError:
        return None
    if value < 0 or value != value or value in (float("inf"), float("-inf")):
        return None
    return int(value)
