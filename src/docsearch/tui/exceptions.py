"""Custom exceptions for TUI operations.

This module defines a hierarchy of exceptions for the failures the view-model
layer surfaces: invalid configuration, backend command failures, page fetch
failures and add-watch validation errors.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import QuerySignature


class TUIError(Exception):
    """Base exception for all TUI-related errors."""


class ConfigError(TUIError):
    """Raised when configuration is invalid or cannot be loaded."""


class CommandError(TUIError):
    """Raised when a backend command fails (transport or unknown error)."""


class FetchError(CommandError):
    """Raised when a result page cannot be fetched for a signature."""

    def __init__(self, signature: QuerySignature, offset: int, message: str) -> None:
        super().__init__(message)
        self.signature = signature
        self.offset = offset


class AddWatchErrorKind(Enum):
    """Classification of add-watch failures shown to the user."""

    PARENT_CHILD_RELATIONSHIP = "parent-child-relationship"
    WATCH_ALREADY_EXISTS = "watch-already-exists"
    OTHER = "other"


class AddWatchError(CommandError):
    """Raised by backends when a watch cannot be added."""

    def __init__(self, kind: AddWatchErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
