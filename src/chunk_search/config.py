"""
Configuration helpers for the chunk index and the search service.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar


DEFAULT_INDEX_PATH = "./chunk-index.duckdb"
ENV_INDEX_PATH = "CHUNK_SEARCH_INDEX_PATH"
ENV_REFRESH_INTERVAL = "CHUNK_SEARCH_REFRESH_INTERVAL"
ENV_MAX_WORDS = "CHUNK_SEARCH_MAX_WORDS"
ENV_OVERLAP_WORDS = "CHUNK_SEARCH_OVERLAP_WORDS"
ENV_LOG_LEVEL = "CHUNK_SEARCH_LOG_LEVEL"

DEFAULT_REFRESH_INTERVAL = 30.0
DEFAULT_MAX_WORDS = 250
DEFAULT_OVERLAP_WORDS = 40
DEFAULT_LOG_LEVEL = "INFO"

LOG_LEVELS = frozenset(
    {"CRITICAL", "FATAL", "ERROR", "WARN", "WARNING", "INFO", "DEBUG", "NOTSET"}
)

T = TypeVar("T", int, float)


class ConfigurationError(ValueError):
    """Raised when settings are invalid or the index cannot be served."""


def resolve_index_path(override_path: str | None = None) -> str:
    """
    Resolve the index path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) CHUNK_SEARCH_INDEX_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_INDEX_PATH) or DEFAULT_INDEX_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


@dataclass(frozen=True)
class IndexSettings:
    """Tunables shared by the CLI and the server."""

    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    max_words: int = DEFAULT_MAX_WORDS
    overlap_words: int = DEFAULT_OVERLAP_WORDS
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if self.refresh_interval < 0:
            raise ConfigurationError("refresh_interval must be >= 0")
        if self.max_words <= 0:
            raise ConfigurationError("max_words must be > 0")
        if self.overlap_words < 0:
            raise ConfigurationError("overlap_words must be >= 0")
        if self.overlap_words >= self.max_words:
            raise ConfigurationError(
                f"overlap_words ({self.overlap_words}) must be smaller than "
                f"max_words ({self.max_words})"
            )
        object.__setattr__(self, "log_level", normalize_log_level(self.log_level))

    @classmethod
    def from_env(cls) -> "IndexSettings":
        return cls(
            refresh_interval=_env_number(
                ENV_REFRESH_INTERVAL, DEFAULT_REFRESH_INTERVAL, float
            ),
            max_words=_env_number(ENV_MAX_WORDS, DEFAULT_MAX_WORDS, int),
            overlap_words=_env_number(ENV_OVERLAP_WORDS, DEFAULT_OVERLAP_WORDS, int),
            log_level=os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
        )


def normalize_log_level(raw: str) -> str:
    """Upper-case a level name, rejecting names the logging module does not know."""
    level = raw.strip().upper()
    if level not in LOG_LEVELS:
        allowed = ", ".join(sorted(LOG_LEVELS))
        raise ConfigurationError(
            f"{ENV_LOG_LEVEL} must be one of {allowed}, got {raw!r}"
        )
    return level


def _env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Send log records to stderr so stdout stays free for tool output."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
