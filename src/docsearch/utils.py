"""Shared configuration helpers for the document search client."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .tui.exceptions import ConfigError
from .tui.models import DEFAULT_PAGE_SIZE

DEFAULT_CACHE_DIR = "~/.cache/docsearch-tui"
DEFAULT_DOCUMENT_EXTENSIONS = (".md", ".markdown", ".txt")


def _positive_int(payload: dict[str, Any], key: str, default: int) -> int:
    try:
        value = int(payload.get(key, default))
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{key} must be an integer, got {payload.get(key)!r}") from err
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def _non_negative_float(payload: dict[str, Any], key: str, default: float) -> float:
    try:
        value = float(payload.get(key, default))
    except (TypeError, ValueError) as err:
        raise ConfigError(f"{key} must be a number, got {payload.get(key)!r}") from err
    if value < 0:
        raise ConfigError(f"{key} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Config:
    """Runtime configuration loaded from config.json."""

    page_size: int = DEFAULT_PAGE_SIZE
    notification_seconds: float = 3.0
    push_channel: str = "watches"
    attach_retry_seconds: float = 1.0
    watch_refresh_seconds: float = 0.0
    invalidate_on_push_finish: bool = False
    cache_dir: Path = Path(os.path.expanduser(DEFAULT_CACHE_DIR))
    document_extensions: tuple[str, ...] = DEFAULT_DOCUMENT_EXTENSIONS
    tui_refresh_per_second: int = 8
    tui_min_terminal_cols: int = 60
    tui_min_terminal_rows: int = 16

    @property
    def log_file(self) -> Path:
        return self.cache_dir / "docsearch-tui.log"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Config:
        """Create a Config object from a raw dictionary.

        Missing keys fall back to their defaults.

        Raises:
            ConfigError: If a value has the wrong type or is out of range
        """
        if not isinstance(payload, dict):
            raise ConfigError("config must be a JSON object")

        notification_seconds = _non_negative_float(payload, "notification_seconds", 3.0)
        if notification_seconds == 0:
            raise ConfigError("notification_seconds must be positive, got 0")
        attach_retry_seconds = _non_negative_float(payload, "attach_retry_seconds", 1.0)
        if attach_retry_seconds == 0:
            raise ConfigError("attach_retry_seconds must be positive, got 0")

        push_channel = str(payload.get("push_channel", "watches")).strip()
        if not push_channel:
            raise ConfigError("push_channel must not be empty")

        extensions_raw = payload.get("document_extensions", list(DEFAULT_DOCUMENT_EXTENSIONS))
        if not isinstance(extensions_raw, list) or not extensions_raw:
            raise ConfigError("document_extensions must be a non-empty list")
        extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in map(str, extensions_raw)
        )

        cache_dir = Path(os.path.expanduser(payload.get("cache_dir", DEFAULT_CACHE_DIR))).resolve()

        return cls(
            page_size=_positive_int(payload, "page_size", DEFAULT_PAGE_SIZE),
            notification_seconds=notification_seconds,
            push_channel=push_channel,
            attach_retry_seconds=attach_retry_seconds,
            watch_refresh_seconds=_non_negative_float(payload, "watch_refresh_seconds", 0.0),
            invalidate_on_push_finish=bool(payload.get("invalidate_on_push_finish", False)),
            cache_dir=cache_dir,
            document_extensions=extensions,
            tui_refresh_per_second=_positive_int(payload, "tui_refresh_per_second", 8),
            tui_min_terminal_cols=_positive_int(payload, "tui_min_terminal_cols", 60),
            tui_min_terminal_rows=_positive_int(payload, "tui_min_terminal_rows", 16),
        )


def load_config(path: Path) -> Config:
    """Load configuration from the provided path.

    A missing file yields the default configuration.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    if not path.exists():
        return Config.from_dict({})
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as err:
        raise ConfigError(f"Failed to read config {path}: {err}") from err
    return Config.from_dict(data)
