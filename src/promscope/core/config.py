"""Tunable settings for parsing, aggregation and polling."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from pydantic import (
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_TWO_TOKEN_PREFIXES = (
    "go",
    "http",
    "storage",
    "task",
    "service",
    "qc",
    "influxdb",
)


@dataclass(frozen=True)
class ExplorerConfig:
    """Settings shared by the catalog, history, engine and poller.

    Attributes:
        history_capacity: Snapshots kept in the rolling window.
        rate_epsilon: Rate rows at or below this value are dropped as noise.
        summary_top_n: Maximum summary groups kept in a grouped table.
        two_token_prefixes: First tokens that combine with the second
            token to form a catalog prefix (e.g. ``http_api``).
        poll_interval_seconds: Poll cadence; also the per-attempt timeout.
        max_attempts: Fetch attempts per polling cycle.
        backoff_base_seconds: Delay before the second attempt; doubles
            for each further attempt.
        use_proxy: Route fetches through the CORS relay.
        proxy_path: Relay endpoint taking the target as ``?url=``.
        storage_key: Key of the persisted dashboard layout document.
    """

    history_capacity: int = 60
    rate_epsilon: float = 0.001
    summary_top_n: int = 5
    two_token_prefixes: tuple[str, ...] = DEFAULT_TWO_TOKEN_PREFIXES
    poll_interval_seconds: float = 2.0
    max_attempts: int = 5
    backoff_base_seconds: float = 0.1
    use_proxy: bool = True
    proxy_path: str = "/api/proxy"
    storage_key: str = "influx-explorer-dashboard"

    def __post_init__(self) -> None:
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")

    def with_prefixes(self, prefixes: Iterable[str]) -> "ExplorerConfig":
        """Return a copy with extra two-token prefixes appended."""
        merged = list(self.two_token_prefixes)
        for prefix in prefixes:
            if prefix and prefix not in merged:
                merged.append(prefix)
        return replace(self, two_token_prefixes=tuple(merged))

    @classmethod
    def from_env(cls, settings: "ExplorerSettings | None" = None) -> "ExplorerConfig":
        """Build a config from ``PROMSCOPE_*`` environment variables.

        Invalid values (unparsable, negative, NaN or infinite) fall back
        to the default for that field.
        """
        return (settings or ExplorerSettings()).to_config()


class ExplorerSettings(BaseSettings):
    """``PROMSCOPE_*`` environment settings.

    Each field falls back to its default when the environment holds a
    value that fails validation.
    """

    model_config = SettingsConfigDict(env_prefix="PROMSCOPE_", extra="ignore")

    history_capacity: int = Field(default=60, ge=1)
    rate_epsilon: float = Field(default=0.001, ge=0, allow_inf_nan=False)
    summary_top_n: int = Field(default=5, ge=1)
    poll_interval: float = Field(default=2.0, gt=0, allow_inf_nan=False)
    max_attempts: int = Field(default=5, ge=1)
    backoff_base: float = Field(default=0.1, ge=0, allow_inf_nan=False)
    use_proxy: bool = True
    two_token_prefixes: str = ""
    target: str = "http://localhost:9090/metrics"
    proxy: str | None = None

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            logger.warning(
                "Ignoring invalid PROMSCOPE_%s=%r", info.field_name.upper(), value
            )
            return cls.model_fields[info.field_name].default

    def to_config(self) -> ExplorerConfig:
        """Return the frozen config these settings describe."""
        config = ExplorerConfig(
            history_capacity=self.history_capacity,
            rate_epsilon=self.rate_epsilon,
            summary_top_n=self.summary_top_n,
            poll_interval_seconds=self.poll_interval,
            max_attempts=self.max_attempts,
            backoff_base_seconds=self.backoff_base,
            use_proxy=self.use_proxy,
        )
        return config.with_prefixes(
            p.strip() for p in self.two_token_prefixes.split(",")
        )


DEFAULT_CONFIG = ExplorerConfig()
