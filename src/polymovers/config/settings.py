"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

from polymovers.models.pipeline import ProcessOptions

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = config_dir or _find_config_dir()
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        polymarket: dict[str, Any] | None = None,
        pipeline: dict[str, Any] | None = None,
        dashboard: dict[str, Any] | None = None,
        categories: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.polymarket = polymarket or {}
        self.pipeline = pipeline or {}
        self.dashboard = dashboard or {}
        self.categories = categories or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            polymarket=raw.get("polymarket"),
            pipeline=raw.get("pipeline"),
            dashboard=raw.get("dashboard"),
            categories=raw.get("categories"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def gamma_api_base(self) -> str:
        return self.polymarket.get("gamma_api_base", "https://gamma-api.polymarket.com")

    @property
    def clob_api_base(self) -> str:
        return self.polymarket.get("clob_api_base", "https://clob.polymarket.com")

    @property
    def request_timeout_sec(self) -> float:
        return float(self.polymarket.get("request_timeout_sec", 10.0))

    @property
    def fetch_limit(self) -> int:
        return int(self.polymarket.get("fetch_limit", 200))

    @property
    def max_retries(self) -> int:
        return int(self.polymarket.get("max_retries", 2))

    @property
    def retry_base_delay_sec(self) -> float:
        return float(self.polymarket.get("retry_base_delay_sec", 1.0))

    @property
    def tier_names(self) -> list[str]:
        return list(self.pipeline.get("tiers") or ["strict", "relaxed", "keyword"])

    @property
    def min_tier_results(self) -> int:
        return int(self.pipeline.get("min_tier_results", 1))

    @property
    def keyword_tier_limit(self) -> int:
        return int(self.pipeline.get("keyword_tier_limit", 15))

    @property
    def relevance_keywords(self) -> list[str]:
        return list(self.pipeline.get("relevance_keywords") or [])

    @property
    def spread_jitter(self) -> bool:
        return bool(self.pipeline.get("spread_jitter", True))

    @property
    def volume_placeholder(self) -> bool:
        return bool(self.pipeline.get("volume_placeholder", False))

    @property
    def random_seed(self) -> int | str | None:
        return self.pipeline.get("random_seed")

    @property
    def category_keywords(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in (self.categories.get("keywords") or {}).items()}

    @property
    def refresh_interval_sec(self) -> float:
        return float(self.dashboard.get("refresh_interval_sec", 60))

    @property
    def with_price_history(self) -> bool:
        return bool(self.dashboard.get("with_price_history", False))

    @property
    def process_options(self) -> ProcessOptions:
        limit = self.dashboard.get("limit")
        return ProcessOptions(
            exclude_inactive=bool(self.dashboard.get("exclude_inactive", False)),
            exclude_resolving_soon=bool(self.dashboard.get("exclude_resolving_soon", False)),
            resolving_soon_hours=float(self.dashboard.get("resolving_soon_hours", 24)),
            minimum_movement=float(self.dashboard.get("minimum_movement", 0)),
            minimum_volume=float(self.dashboard.get("minimum_volume", 0)),
            limit=int(limit) if limit is not None else None,
        )

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def _stderr_logger(*args: Any) -> Any:
    """Print logger on whatever sys.stderr is at call time (stdout carries command output)."""
    import structlog

    return structlog.PrintLogger(sys.stderr)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
