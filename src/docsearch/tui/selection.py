"""Keyboard-driven selection over a growing result list.

The state machine never touches UI handles. Each transition queues plain
command values (focus the input, scroll to an index) that the presentation
adapter drains with ``take_commands`` and executes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .keybindings import Modifiers
from .models import Movement, SelectionState

logger = logging.getLogger(__name__)


class Alignment(Enum):
    """Viewport edge a scrolled-to row is anchored to."""

    START = "start"
    END = "end"


@dataclass(frozen=True)
class FocusInput:
    """Move keyboard focus into the primary text input."""


@dataclass(frozen=True)
class BlurInput:
    """Move keyboard focus away from the text input."""


@dataclass(frozen=True)
class ScrollIntoView:
    """Bring ``index`` into view anchored to ``align``."""

    index: int
    align: Alignment


@dataclass(frozen=True)
class ScrollToIndex:
    """Scroll so that ``index`` is the first visible row."""

    index: int


SelectionCommand = FocusInput | BlurInput | ScrollIntoView | ScrollToIndex

UP_CODES = ("ArrowUp",)
DOWN_CODES = ("ArrowDown",)


class SelectionStateMachine:
    """Maintains a navigable index over a list whose length changes.

    The item count is read through ``count`` at every transition rather than
    captured once, so handlers always see the latest fetched length.
    """

    def __init__(
        self,
        count: Callable[[], int],
        is_blocked: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            count: Returns the current number of items
            is_blocked: Returns True while an overlay (menu) owns the keyboard
        """
        self._count = count
        self._is_blocked = is_blocked or (lambda: False)
        self._state = SelectionState()
        self._commands: list[SelectionCommand] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def index(self) -> int:
        return self._state.index

    def take_commands(self) -> list[SelectionCommand]:
        """Return and clear the queued presentation commands."""
        commands, self._commands = self._commands, []
        return commands

    def _transition(self, index: int, movement: Movement) -> None:
        previous = self._state.index
        self._state = SelectionState(index=index, last_movement=movement)
        if index == previous:
            return
        if index == -1:
            self._commands.append(FocusInput())
            return
        align = Alignment.END if movement == Movement.UP else Alignment.START
        self._commands.append(ScrollIntoView(index=index, align=align))
        self._commands.append(BlurInput())

    def move_up(self) -> None:
        """Move towards the input; from -1 nothing happens."""
        last = self._count() - 1
        self._transition(max(-1, min(self._state.index - 1, last)), Movement.UP)

    def move_down(self) -> None:
        """Move towards the end of the list, stopping at the last item.

        An index left past the end by a shrunken list lands on the last item.
        """
        last = self._count() - 1
        self._transition(min(self._state.index + 1, last), Movement.DOWN)

    def select(self, index: int) -> None:
        """Select a row directly (mouse click); out-of-range values are clamped."""
        last = self._count() - 1
        self._transition(max(-1, min(index, last)), self._state.last_movement)

    def reset(self) -> None:
        """Back to no selection, used whenever the query signature changes."""
        self._transition(-1, Movement.NONE)
        self._commands.append(ScrollToIndex(index=0))

    def clamp(self) -> None:
        """Pull the index back into range after the item count shrank."""
        last = self._count() - 1
        if self._state.index > last:
            logger.debug(f"Clamping selection {self._state.index} to {last}")
            self._transition(last, self._state.last_movement)

    def handle_key(self, code: str, modifiers: Modifiers) -> bool:
        """Key handler implementing the movement bindings.

        Arrows are accepted unmodified, Ctrl+P / Ctrl+N always, and vim-style
        k / j only while a row is selected so they stay typeable in the input.
        """
        if self._is_blocked():
            return False
        selected = self._state.index != -1
        if (
            (code in UP_CODES and modifiers.none)
            or (selected and code == "KeyK" and modifiers.none)
            or (code == "KeyP" and modifiers.ctrl)
        ):
            self.move_up()
            return True
        if (
            (code in DOWN_CODES and modifiers.none)
            or (selected and code == "KeyJ" and modifiers.none)
            or (code == "KeyN" and modifiers.ctrl)
        ):
            self.move_down()
            return True
        return False
