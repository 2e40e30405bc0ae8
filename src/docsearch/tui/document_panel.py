"""Document panel view-model.

Ties the search form state (query text, tags, sort) to a pagination engine and
a selection state machine, and registers the panel's key handlers with the
dispatcher. The presentation layer reads immutable ``ResultsView`` snapshots
and executes the selection commands it drains from ``selection``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .document_actions import DocumentActions
from .keybindings import KeyDispatcher, KeyEvent, Modifiers, Subscription
from .models import (
    QuerySignature,
    ResultItem,
    SelectionState,
    SortMode,
    ViewStatus,
)
from .pagination import PaginationEngine
from .query_cache import QueryCache
from .selection import SelectionStateMachine

logger = logging.getLogger(__name__)

NAVIGATION_PRIORITY = 10
SHORTCUT_PRIORITY = 10


@dataclass(frozen=True)
class ResultsView:
    """Everything needed to render the document panel once."""

    status: ViewStatus
    items: tuple[ResultItem, ...]
    total_count: int
    selection: SelectionState
    query: str
    tags: tuple[str, ...]
    sort: SortMode
    show_sort: bool
    has_more: bool
    error_message: str | None = None

    @property
    def input_focused(self) -> bool:
        return not self.selection.is_selected


class DocumentPanel:
    """Search form, paginated result list and keyboard selection."""

    def __init__(self, cache: QueryCache, actions: DocumentActions, dispatcher: KeyDispatcher) -> None:
        """Initialize the panel and register its key handlers.

        Args:
            cache: Shared result cache
            actions: Document actions bound to Enter / f / c
            dispatcher: Key dispatcher of the application
        """
        self.actions = actions
        self.engine = PaginationEngine(cache)
        self.active = True
        self.menu_open = False
        self.selection = SelectionStateMachine(
            count=lambda: len(self.engine.items),
            is_blocked=lambda: self.menu_open or not self.active,
        )
        self._query = ""
        self._tags: list[str] = []
        self._sort = SortMode.RELEVANCE
        self._listeners: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe_engine = self.engine.subscribe(self._on_results_changed)
        self._subscriptions: list[Subscription] = [
            dispatcher.register(self.selection.handle_key, NAVIGATION_PRIORITY, "documents.navigation"),
            dispatcher.register(self.handle_shortcut, SHORTCUT_PRIORITY, "documents.shortcuts"),
        ]

    @property
    def query(self) -> str:
        return self._query

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags)

    @property
    def sort(self) -> SortMode:
        return self._sort

    @property
    def signature(self) -> QuerySignature:
        return QuerySignature(text=self._query, tags=frozenset(self._tags), sort=self._sort)

    @property
    def show_sort(self) -> bool:
        return bool(self._query.strip())

    @property
    def selected_item(self) -> ResultItem | None:
        index = self.selection.index
        items = self.engine.items
        if 0 <= index < len(items):
            return items[index]
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

    def _on_results_changed(self) -> None:
        self.selection.clamp()
        self._emit()

    def _apply_signature(self) -> None:
        signature = self.signature
        if signature != self.engine.signature:
            self.selection.reset()
            self.engine.set_signature(signature)
        self._emit()

    def activate(self) -> None:
        """Load the initial listing; call once the event loop runs."""
        self._apply_signature()

    def set_query(self, text: str) -> None:
        self._query = text
        self._apply_signature()

    def add_tag(self, tag: str) -> None:
        if tag in self._tags:
            return
        self._tags.append(tag)
        self._apply_signature()

    def remove_tag(self, tag: str) -> None:
        if tag not in self._tags:
            return
        self._tags.remove(tag)
        self._apply_signature()

    def set_sort(self, sort: SortMode) -> None:
        self._sort = sort
        self._apply_signature()

    def reset_query(self) -> bool:
        """Clear query and tags, drop the selection and scroll back to the top."""
        self._query = ""
        self._tags = []
        if self.signature == self.engine.signature:
            self.selection.reset()
        self._apply_signature()
        return True

    def on_row_click(self, index: int) -> None:
        self.selection.select(index)
        self._emit()

    def on_input_focus(self) -> None:
        self.selection.select(-1)
        self._emit()

    def on_end_reached(self, index: int) -> None:
        self.engine.on_end_reached(index)

    def retry(self) -> None:
        self.engine.retry()

    def apply_text_input(self, event: KeyEvent) -> bool:
        """Native effect of a key the dispatcher left to the search field.

        Returns:
            True if the query or tags changed
        """
        if event.code == "Backspace":
            if self._query:
                self.set_query(self._query[:-1])
                return True
            if self._tags:
                self.remove_tag(self._tags[-1])
                return True
            return False
        if event.text and event.text.isprintable() and not event.modifiers.ctrl:
            self.set_query(self._query + event.text)
            return True
        return False

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _run_on_selected(self, action: Callable[[ResultItem], Awaitable[bool]]) -> bool:
        item = self.selected_item
        if item is None:
            return False
        self._spawn(action(item))
        return True

    def _add_next_tag_of_selected(self) -> bool:
        item = self.selected_item
        if item is None:
            return False
        for tag in sorted(item.tags):
            if tag not in self._tags:
                self.add_tag(tag)
                return True
        return False

    def _toggle_sort(self) -> bool:
        if not self.show_sort:
            return False
        self.set_sort(SortMode.DATE if self._sort == SortMode.RELEVANCE else SortMode.RELEVANCE)
        return True

    def handle_shortcut(self, code: str, modifiers: Modifiers) -> bool:
        """Shortcuts active only while a row is selected."""
        if not self.active or self.selection.index == -1:
            return False
        if code == "Enter":
            return self._run_on_selected(self.actions.open_document)
        if code == "KeyF" and modifiers.none:
            return self._run_on_selected(self.actions.open_containing_folder)
        if code == "KeyC" and modifiers.none:
            return self._run_on_selected(self.actions.copy_path)
        if code == "KeyT" and modifiers.none:
            return self._add_next_tag_of_selected()
        if code == "KeyS" and modifiers.none:
            return self._toggle_sort()
        if code == "Escape":
            return self.reset_query()
        return False

    def view(self) -> ResultsView:
        error = self.engine.error
        return ResultsView(
            status=self.engine.status,
            items=self.engine.items,
            total_count=self.engine.total_count,
            selection=self.selection.state,
            query=self._query,
            tags=tuple(self._tags),
            sort=self._sort,
            show_sort=self.show_sort,
            has_more=self.engine.has_more,
            error_message=str(error) if error is not None else None,
        )

    async def wait_idle(self) -> None:
        await self.engine.wait_idle()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._unsubscribe_engine()
        self.engine.close()
