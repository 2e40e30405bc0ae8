"""Watch panel view-model: watched folders, job progress and recommendations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .keybindings import KeyDispatcher, Modifiers, Subscription
from .models import JobProgress, JobStatus, JobType, PathRecommendation, SelectionState, Watch, WatchState
from .selection import SelectionStateMachine
from .watch_actions import WatchActions
from .watch_sync import WatchSynchronizer

logger = logging.getLogger(__name__)

WATCH_PANEL_PRIORITY = 10


@dataclass(frozen=True)
class WatchRowView:
    """One rendered watch row."""

    watch: Watch
    disabled: bool
    can_delete: bool
    job_type: JobType | None = None
    progress: JobProgress | None = None

    @classmethod
    def build(cls, watch: Watch, state: WatchState) -> WatchRowView:
        """Combine a watch with its job report; only running jobs show progress."""
        report = state.job_report_for(watch.id)
        if report is not None and report.status == JobStatus.RUNNING:
            return cls(
                watch=watch,
                disabled=watch.is_disabled,
                can_delete=watch.can_delete,
                job_type=report.job_type,
                progress=report.progress,
            )
        return cls(watch=watch, disabled=watch.is_disabled, can_delete=watch.can_delete)


@dataclass(frozen=True)
class WatchPanelView:
    rows: tuple[WatchRowView, ...]
    selection: SelectionState
    recommendations: tuple[PathRecommendation, ...]


class WatchPanel:
    """Lists watches from the synchronizer and handles watch key bindings.

    The panel's handlers only act while ``active`` is set, so the document
    panel keeps the arrow keys when the watch tab is hidden.
    """

    def __init__(self, synchronizer: WatchSynchronizer, actions: WatchActions, dispatcher: KeyDispatcher) -> None:
        self.synchronizer = synchronizer
        self.actions = actions
        self.active = False
        self.selection = SelectionStateMachine(
            count=lambda: len(self.synchronizer.state.watches),
            is_blocked=lambda: not self.active,
        )
        self._listeners: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe_sync = synchronizer.subscribe(self._on_state)
        # Registered after the document panel, so it runs first on equal priority.
        self._subscriptions: list[Subscription] = [
            dispatcher.register(self.handle_key, WATCH_PANEL_PRIORITY, "watches"),
        ]

    @property
    def selected_watch(self) -> Watch | None:
        index = self.selection.index
        watches = self.synchronizer.state.watches
        if 0 <= index < len(watches):
            return watches[index]
        return None

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _on_state(self, state: WatchState) -> None:
        self.selection.clamp()
        self._emit()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def activate(self) -> None:
        """Start loading first-run recommendations."""
        self._spawn(self._load_recommendations())

    async def _load_recommendations(self) -> None:
        await self.actions.load_recommendations()
        self._emit()

    async def _accept_recommendations(self) -> None:
        await self.actions.accept_recommendations()
        self._emit()

    def handle_key(self, code: str, modifiers: Modifiers) -> bool:
        if not self.active:
            return False
        if self.selection.handle_key(code, modifiers):
            return True
        if not modifiers.none:
            return False
        if code == "KeyD":
            watch = self.selected_watch
            if watch is None or not watch.can_delete:
                return False
            logger.info(f"Deleting watch {watch.id} ({watch.path})")
            self._spawn(self.actions.delete_watch(watch))
            return True
        if code == "KeyA":
            if not self.actions.recommendations:
                return False
            self._spawn(self._accept_recommendations())
            return True
        return False

    def add_watch(self, path: str) -> None:
        self._spawn(self.actions.add_watch(path))

    def view(self) -> WatchPanelView:
        state = self.synchronizer.state
        return WatchPanelView(
            rows=tuple(WatchRowView.build(watch, state) for watch in state.watches),
            selection=self.selection.state,
            recommendations=tuple(self.actions.recommendations),
        )

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._unsubscribe_sync()
