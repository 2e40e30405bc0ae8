"""Keyboard input dispatch for the TUI application.

This module routes each key event to the registered handlers in explicit
priority order until one of them consumes it, and decides whether an
unconsumed key may still perform its native effect (typing into the search
field) or must be suppressed.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Modifiers:
    """Modifier keys held during a key press."""

    ctrl: bool = False
    shift: bool = False

    @property
    def none(self) -> bool:
        """True when neither Control nor Shift is held."""
        return not self.ctrl and not self.shift


NO_MODIFIERS = Modifiers()


class KeyTarget(Enum):
    """Kind of control that had focus when the key was pressed."""

    TEXT_INPUT = "text_input"
    OTHER = "other"


@dataclass(frozen=True)
class KeyEvent:
    """One logical key press.

    ``code`` uses physical key names: ``ArrowUp``, ``ArrowDown``, ``Enter``,
    ``Escape``, ``Tab``, ``Backspace``, ``KeyA``..``KeyZ``, ``Digit0``..``Digit9``
    and ``Char`` for any other printable character (carried in ``text``).
    """

    code: str
    modifiers: Modifiers = NO_MODIFIERS
    target: KeyTarget = KeyTarget.OTHER
    text: str = ""


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one key event.

    Attributes:
        consumed: A handler took the key
        prevent_default: The key must not perform its native effect
    """

    consumed: bool
    prevent_default: bool


# Handler returns True if it consumed the key.
KeyHandler = Callable[[str, Modifiers], bool]


class Subscription:
    """Handle returned by ``KeyDispatcher.register``."""

    def __init__(self, dispatcher: KeyDispatcher, token: int) -> None:
        self._dispatcher = dispatcher
        self._token = token
        self.active = True

    def unsubscribe(self) -> None:
        """Remove the handler; safe to call more than once."""
        if self.active:
            self._dispatcher._remove(self._token)
            self.active = False


@dataclass
class _Registration:
    handler: KeyHandler
    priority: int
    sequence: int
    name: str


class KeyDispatcher:
    """Routes key events to registered handlers.

    Handlers run from the highest ``priority`` to the lowest. Among equal
    priorities the most recently registered handler runs first. Dispatch stops
    at the first handler that returns True.
    """

    def __init__(self) -> None:
        self._registrations: dict[int, _Registration] = {}
        self._tokens = itertools.count()

    def register(self, handler: KeyHandler, priority: int = 0, name: str | None = None) -> Subscription:
        """Register a key handler.

        Args:
            handler: Callable receiving (code, modifiers) and returning whether
                it consumed the key
            priority: Higher values run earlier
            name: Label used in log messages

        Returns:
            Subscription whose ``unsubscribe`` removes the handler
        """
        token = next(self._tokens)
        self._registrations[token] = _Registration(
            handler=handler,
            priority=priority,
            sequence=token,
            name=name or getattr(handler, "__qualname__", repr(handler)),
        )
        return Subscription(self, token)

    def _remove(self, token: int) -> None:
        self._registrations.pop(token, None)

    def _ordered(self) -> list[_Registration]:
        return sorted(
            self._registrations.values(),
            key=lambda reg: (reg.priority, reg.sequence),
            reverse=True,
        )

    def dispatch(self, event: KeyEvent) -> DispatchResult:
        """Dispatch one key event.

        Args:
            event: The key press to route

        Returns:
            DispatchResult; ``prevent_default`` is False only when nobody
            consumed the key and it was aimed at a text input
        """
        consumed = False
        # Snapshot so handlers may (un)register during dispatch.
        for registration in self._ordered():
            try:
                consumed = bool(registration.handler(event.code, event.modifiers))
            except Exception as err:
                logger.error(
                    f"Key handler {registration.name} failed on {event.code}: {err}",
                    exc_info=True,
                )
                consumed = False
            if consumed:
                logger.debug(f"Key {event.code} consumed by {registration.name}")
                break

        prevent_default = consumed or event.target != KeyTarget.TEXT_INPUT
        return DispatchResult(consumed=consumed, prevent_default=prevent_default)

    def __len__(self) -> int:
        return len(self._registrations)
