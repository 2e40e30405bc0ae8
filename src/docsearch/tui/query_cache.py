"""Keyed, paginated cache of search and listing results.

The cache holds one ``CacheEntry`` per ``QuerySignature``. Entries are never
mutated: each new page produces a new entry that replaces the old one in a new
mapping, and a "documents changed" signal drops every entry at once.

Concurrent requests for the same (signature, offset) share a single backend
call. There is no cancellation of backend calls; a fetch whose result became
irrelevant runs to completion and its page is simply not exposed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..commands import CommandFacade
from .exceptions import FetchError
from .models import DEFAULT_PAGE_SIZE, CacheEntry, QuerySignature, ResultPage

logger = logging.getLogger(__name__)

# Called with the signature whose entry changed, or None after a full flush.
CacheListener = Callable[[QuerySignature | None], None]


class QueryCache:
    """Cache of result pages with in-flight request deduplication."""

    def __init__(self, commands: CommandFacade, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        """Initialize the cache.

        Args:
            commands: Backend facade used to load pages
            page_size: Number of items requested per page
        """
        self.commands = commands
        self.page_size = page_size
        self._entries: dict[QuerySignature, CacheEntry] = {}
        self._in_flight: dict[tuple[QuerySignature, int], asyncio.Task[ResultPage]] = {}
        self._listeners: list[CacheListener] = []
        self._generation = 0
        self.backend_calls = 0

    def get_entry(self, signature: QuerySignature) -> CacheEntry | None:
        return self._entries.get(signature)

    def is_in_flight(self, signature: QuerySignature, offset: int | None = None) -> bool:
        """True if a fetch for ``signature`` (at ``offset`` if given) is pending."""
        if offset is not None:
            return (signature, offset) in self._in_flight
        return any(key[0] == signature for key in self._in_flight)

    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        """Register a change listener and return a function removing it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, signature: QuerySignature | None) -> None:
        for listener in list(self._listeners):
            listener(signature)

    async def get_or_fetch(self, signature: QuerySignature, offset: int) -> ResultPage:
        """Return the page at ``offset`` for ``signature``, fetching it if needed.

        Args:
            signature: Query the page belongs to
            offset: Index of the first item of the page

        Returns:
            The cached or freshly fetched page

        Raises:
            FetchError: If the backend call failed
        """
        entry = self._entries.get(signature)
        if entry is not None:
            page = entry.page_at(offset)
            if page is not None:
                return page

        key = (signature, offset)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._fetch(signature, offset, self._generation)
            )
            self._in_flight[key] = task
        else:
            logger.debug(f"Joining in-flight fetch for offset {offset}")
        # Shielded so a cancelled caller does not cancel the shared fetch.
        return await asyncio.shield(task)

    async def _fetch(self, signature: QuerySignature, offset: int, generation: int) -> ResultPage:
        key = (signature, offset)
        try:
            page = await self._load_page(signature, offset)
        except Exception as err:
            logger.warning(
                f"Page fetch failed at offset {offset}: {err}",
                extra={"extra_context": {"text": signature.text, "offset": offset}},
            )
            raise FetchError(signature, offset, f"Failed to load results: {err}") from err
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

        if generation != self._generation:
            logger.debug(f"Dropping page at offset {offset} fetched before a flush")
            return page

        current = self._entries.get(signature) or CacheEntry(signature=signature, page_size=self.page_size)
        updated = current.with_page(page)
        if updated is not current:
            self._entries = {**self._entries, signature: updated}
            self._notify(signature)
        return page

    async def _load_page(self, signature: QuerySignature, offset: int) -> ResultPage:
        """Dispatch to the listing or the search source depending on the query."""
        self.backend_calls += 1
        if signature.is_unfiltered:
            logger.debug(f"listAll offset={offset} limit={self.page_size}")
            page = await self.commands.list_all(offset, self.page_size)
        else:
            logger.debug(f"search offset={offset} limit={self.page_size}")
            page = await self.commands.search(
                signature.text,
                sorted(signature.tags),
                signature.sort,
                offset,
                self.page_size,
            )
        if page.offset != offset:
            page = ResultPage(offset=offset, items=page.items, total_count=page.total_count)
        return page

    def invalidate_all(self) -> None:
        """Drop every entry; pending fetches will not repopulate the cache."""
        count = len(self._entries)
        self._entries = {}
        self._in_flight = {}
        self._generation += 1
        logger.info(f"Result cache flushed ({count} entries)")
        self._notify(None)
