"""Incremental page loading on top of the query cache.

The engine exposes the gap-free item sequence for the active signature and
loads the next page only when asked to: when a signature is first activated,
and when the list boundary reports that the view reached the end. It never
fetches ahead on its own and never retries a failed fetch unless ``retry`` is
called.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from .exceptions import FetchError
from .models import CacheEntry, QuerySignature, ResultItem, ViewStatus
from .query_cache import QueryCache

logger = logging.getLogger(__name__)


class PaginationEngine:
    """Drives page fetches for one active signature at a time."""

    def __init__(self, cache: QueryCache) -> None:
        """Initialize the engine and start listening to cache changes.

        Args:
            cache: Shared result cache
        """
        self.cache = cache
        self._signature: QuerySignature | None = None
        self._view: CacheEntry | None = None
        self._error: FetchError | None = None
        self._listeners: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe_cache = cache.subscribe(self._on_cache_change)

    @property
    def signature(self) -> QuerySignature | None:
        return self._signature

    @property
    def entry(self) -> CacheEntry | None:
        """Entry currently exposed to the view.

        After a cache flush this keeps pointing at the previous entry until the
        first page of the reload arrives.
        """
        return self._view

    @property
    def items(self) -> tuple[ResultItem, ...]:
        return self._view.items if self._view is not None else ()

    @property
    def total_count(self) -> int:
        return self._view.total_count if self._view is not None else 0

    @property
    def next_offset(self) -> int:
        return self._view.next_offset if self._view is not None else 0

    @property
    def has_more(self) -> bool:
        return self._view is None or not self._view.exhausted

    @property
    def is_loading(self) -> bool:
        return self._signature is not None and self.cache.is_in_flight(self._signature)

    @property
    def error(self) -> FetchError | None:
        return self._error

    @property
    def status(self) -> ViewStatus:
        if self._error is not None:
            return ViewStatus.ERROR
        if self._view is None:
            return ViewStatus.LOADING
        if not self._view.items and self._view.exhausted:
            return ViewStatus.EMPTY
        return ViewStatus.READY

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a listener called whenever the exposed view changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def set_signature(self, signature: QuerySignature) -> bool:
        """Make ``signature`` the active one.

        Cached pages for it are exposed at once; if none exist the first page
        is requested.

        Returns:
            True if the active signature changed
        """
        if signature == self._signature:
            return False
        self._signature = signature
        self._error = None
        self._view = self.cache.get_entry(signature)
        self._emit()
        if self._view is None:
            self._spawn(self.load_more())
        return True

    async def load_more(self) -> bool:
        """Fetch the next page for the active signature.

        No-op while a fetch for the signature is in flight, once the entry is
        exhausted, or while a fetch error is pending.

        Returns:
            True if a page was loaded
        """
        signature = self._signature
        if signature is None or self._error is not None:
            return False
        if self.cache.is_in_flight(signature):
            return False
        entry = self.cache.get_entry(signature)
        if entry is not None and entry.exhausted:
            return False

        offset = entry.next_offset if entry is not None else 0
        try:
            await self.cache.get_or_fetch(signature, offset)
        except FetchError as err:
            if signature == self._signature:
                self._error = err
                self._emit()
            else:
                logger.debug(f"Ignoring fetch error for superseded query at offset {offset}")
            return False
        return True

    def on_end_reached(self, index: int) -> None:
        """List boundary callback: the view is near the last loaded row."""
        if not self.has_more or self._error is not None:
            return
        logger.debug(f"End reached at row {index}, requesting offset {self.next_offset}")
        self._spawn(self.load_more())

    def retry(self) -> None:
        """User-initiated re-trigger after a fetch error."""
        if self._error is None:
            return
        self._error = None
        self._emit()
        self._spawn(self.load_more())

    def _on_cache_change(self, signature: QuerySignature | None) -> None:
        if signature is None:
            # Flush: keep the old view visible and reload from the first page.
            if self._signature is not None and self._error is None:
                self._spawn(self.load_more())
            return
        if signature != self._signature:
            logger.debug("Page stored for an inactive query; not exposed")
            return
        self._view = self.cache.get_entry(signature)
        self._emit()

    async def wait_idle(self) -> None:
        """Wait until every fetch started by the engine has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        self._unsubscribe_cache()
        self._listeners.clear()
