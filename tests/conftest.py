"""Shared test fixtures for the document search client."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

import pytest

from docsearch.commands import CommandFacade, Unlisten, WatchStateHandler
from docsearch.tui.models import (
    PathRecommendation,
    ResultItem,
    ResultPage,
    SortMode,
    Watch,
    WatchState,
    WatchStatus,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def _item(index: int, highlight: str | None) -> ResultItem:
    return ResultItem(
        path=f"/docs/note-{index:03d}.md",
        display_title=None,
        tags=frozenset({"even" if index % 2 == 0 else "odd"}),
        created_at=BASE_TIME + timedelta(minutes=index),
        modified_at=BASE_TIME + timedelta(minutes=index),
        highlight=highlight,
    )


class FakeCommands(CommandFacade):
    """Command facade recording every call.

    ``gate`` holds page fetches until it is set; ``fail`` makes page fetches
    raise; ``listen_failures`` makes the next N attach attempts raise.
    """

    def __init__(self, total: int = 25) -> None:
        self.total = total
        self.calls: list[tuple] = []
        self.gate: asyncio.Event | None = None
        self.fail: Exception | None = None

        self.watch_state = WatchState()
        self.watch_state_error: Exception | None = None
        self.watches: list[Watch] = []
        self.recommendations: list[PathRecommendation] = []
        self.add_watch_error: Exception | None = None
        self.delete_watch_error: Exception | None = None
        self.added: list[str] = []
        self.deleted: list[str] = []

        self.handlers: dict[str, WatchStateHandler] = {}
        self.listen_calls = 0
        self.listen_failures = 0
        self.unlisten_calls = 0

    async def _page(self, offset: int, limit: int, highlight: str | None) -> ResultPage:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        end = min(self.total, offset + limit)
        items = tuple(_item(index, highlight) for index in range(offset, end))
        return ResultPage(offset=offset, items=items, total_count=self.total)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def list_all(self, offset: int, limit: int) -> ResultPage:
        self.calls.append(("list_all", offset, limit))
        return await self._page(offset, limit, None)

    async def search(
        self,
        text: str,
        tags: Sequence[str],
        sort: SortMode,
        offset: int,
        limit: int,
    ) -> ResultPage:
        self.calls.append(("search", text, tuple(tags), sort, offset, limit))
        return await self._page(offset, limit, f"<b>{text}</b>" if text else "")

    async def list_watches(self) -> list[Watch]:
        self.calls.append(("list_watches",))
        return list(self.watches)

    async def get_watch_state(self) -> WatchState:
        self.calls.append(("get_watch_state",))
        if self.watch_state_error is not None:
            raise self.watch_state_error
        return self.watch_state

    async def add_watch(self, path: str) -> Watch:
        self.calls.append(("add_watch", path))
        if self.add_watch_error is not None:
            raise self.add_watch_error
        self.added.append(path)
        return Watch(id=len(self.added), path=path, status=WatchStatus.ADDING, created_at=BASE_TIME)

    async def delete_watch(self, path: str) -> None:
        self.calls.append(("delete_watch", path))
        if self.delete_watch_error is not None:
            raise self.delete_watch_error
        self.deleted.append(path)

    async def get_containing_folder(self, path: str) -> str:
        self.calls.append(("get_containing_folder", path))
        return path.rsplit("/", 1)[0]

    async def get_path_recommendations(self) -> list[PathRecommendation]:
        self.calls.append(("get_path_recommendations",))
        return list(self.recommendations)

    async def listen(self, channel: str, handler: WatchStateHandler) -> Unlisten:
        self.listen_calls += 1
        if self.listen_failures > 0:
            self.listen_failures -= 1
            raise ConnectionError("channel unavailable")
        self.handlers[channel] = handler

        def unlisten() -> None:
            self.unlisten_calls += 1
            self.handlers.pop(channel, None)

        return unlisten

    def push(self, state: WatchState, channel: str = "watches") -> None:
        self.handlers[channel](state)


@pytest.fixture
def fake_commands() -> FakeCommands:
    """Fake backend holding 25 documents."""
    return FakeCommands(total=25)
