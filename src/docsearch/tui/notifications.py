"""Transient, auto-dismissing user notifications."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import AddWatchErrorKind

WATCH_ERROR_TITLE = "Could not add folder"

WATCH_ERROR_MESSAGES = {
    AddWatchErrorKind.PARENT_CHILD_RELATIONSHIP: (
        "The folder contains, or is inside, a folder that is already watched."
    ),
    AddWatchErrorKind.WATCH_ALREADY_EXISTS: "The folder is already watched.",
    AddWatchErrorKind.OTHER: "An unexpected error occurred.",
}


@dataclass(frozen=True)
class Notification:
    title: str
    message: str
    expires_at: float


class NotificationCenter:
    """Shows one notification at a time for a fixed duration.

    A newer notification replaces the one on screen.
    """

    def __init__(self, display_seconds: float = 3.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.display_seconds = display_seconds
        self._clock = clock
        self._current: Notification | None = None

    def push(self, title: str, message: str) -> Notification:
        notification = Notification(
            title=title,
            message=message,
            expires_at=self._clock() + self.display_seconds,
        )
        self._current = notification
        return notification

    def push_watch_error(self, kind: AddWatchErrorKind) -> Notification:
        return self.push(WATCH_ERROR_TITLE, WATCH_ERROR_MESSAGES[kind])

    @property
    def current(self) -> Notification | None:
        """The notification on screen, or None once it expired."""
        if self._current is not None and self._clock() >= self._current.expires_at:
            self._current = None
        return self._current

    def dismiss(self) -> None:
        self._current = None
