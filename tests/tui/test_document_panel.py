"""Tests for the document panel view-model."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from docsearch.tui.document_actions import DocumentActions
from docsearch.tui.document_panel import DocumentPanel
from docsearch.tui.keybindings import KeyDispatcher, KeyEvent, KeyTarget, Modifiers
from docsearch.tui.models import SortMode, ViewStatus
from docsearch.tui.query_cache import QueryCache
from docsearch.tui.selection import FocusInput, ScrollToIndex

if TYPE_CHECKING:
    from conftest import FakeCommands


@pytest.fixture
def bridge() -> AsyncMock:
    bridge = AsyncMock()
    bridge.open_path.return_value = None
    bridge.copy_text.return_value = None
    return bridge


@pytest.fixture
def dispatcher() -> KeyDispatcher:
    return KeyDispatcher()


@pytest.fixture
def panel(fake_commands: FakeCommands, bridge: AsyncMock, dispatcher: KeyDispatcher) -> DocumentPanel:
    cache = QueryCache(fake_commands, page_size=10)
    return DocumentPanel(cache, DocumentActions(fake_commands, bridge), dispatcher)


async def activated(panel: DocumentPanel) -> DocumentPanel:
    panel.activate()
    await panel.wait_idle()
    panel.selection.take_commands()
    return panel


class TestQueryState:
    """Tests for query, tags and sort."""

    @pytest.mark.asyncio
    async def test_initial_listing(self, panel: DocumentPanel, fake_commands: FakeCommands) -> None:
        await activated(panel)
        view = panel.view()
        assert view.status == ViewStatus.READY
        assert len(view.items) == 10
        assert view.input_focused
        assert fake_commands.calls[0][0] == "list_all"

    @pytest.mark.asyncio
    async def test_signature_change_resets_selection_and_scrolls_top(self, panel: DocumentPanel) -> None:
        await activated(panel)
        panel.selection.select(3)
        panel.selection.take_commands()

        panel.set_query("report")

        assert panel.selection.index == -1
        assert panel.selection.take_commands() == [FocusInput(), ScrollToIndex(0)]

    @pytest.mark.asyncio
    async def test_whitespace_edit_keeps_selection(self, panel: DocumentPanel) -> None:
        """Trailing spaces do not change the signature."""
        await activated(panel)
        panel.set_query("report")
        await panel.wait_idle()
        panel.selection.select(2)

        panel.set_query("report ")

        assert panel.selection.index == 2

    @pytest.mark.asyncio
    async def test_add_tag_ignores_duplicates(self, panel: DocumentPanel, fake_commands: FakeCommands) -> None:
        await activated(panel)
        panel.add_tag("work")
        panel.add_tag("work")
        await panel.wait_idle()
        assert panel.tags == ("work",)
        assert fake_commands.count("search") == 1

    @pytest.mark.asyncio
    async def test_show_sort_only_with_text(self, panel: DocumentPanel) -> None:
        await activated(panel)
        panel.add_tag("work")
        assert not panel.view().show_sort
        panel.set_query(" report ")
        assert panel.view().show_sort

    @pytest.mark.asyncio
    async def test_set_sort_changes_signature(self, panel: DocumentPanel, fake_commands: FakeCommands) -> None:
        await activated(panel)
        panel.set_query("report")
        await panel.wait_idle()
        panel.set_sort(SortMode.DATE)
        await panel.wait_idle()
        assert fake_commands.calls[-1] == ("search", "report", (), SortMode.DATE, 0, 10)

    @pytest.mark.asyncio
    async def test_list_shrink_clamps_selection(self, panel: DocumentPanel) -> None:
        await activated(panel)
        panel.engine.on_end_reached(9)
        await panel.wait_idle()
        panel.selection.select(15)

        panel.engine.cache.invalidate_all()
        await panel.wait_idle()

        assert len(panel.engine.items) == 10
        assert panel.selection.index == 9


class TestTextInput:
    """Tests for the native text input effect."""

    @pytest.mark.asyncio
    async def test_typing_and_backspace(self, panel: DocumentPanel) -> None:
        await activated(panel)
        panel.apply_text_input(KeyEvent("KeyA", target=KeyTarget.TEXT_INPUT, text="a"))
        panel.apply_text_input(KeyEvent("KeyB", target=KeyTarget.TEXT_INPUT, text="b"))
        assert panel.query == "ab"
        panel.apply_text_input(KeyEvent("Backspace", target=KeyTarget.TEXT_INPUT))
        assert panel.query == "a"

    @pytest.mark.asyncio
    async def test_backspace_on_empty_query_removes_last_tag(self, panel: DocumentPanel) -> None:
        await activated(panel)
        panel.add_tag("a")
        panel.add_tag("b")
        assert panel.apply_text_input(KeyEvent("Backspace"))
        assert panel.tags == ("a",)


class TestShortcuts:
    """Tests for keyboard shortcuts on the selected document."""

    @pytest.mark.asyncio
    async def test_shortcuts_inactive_without_selection(
        self, panel: DocumentPanel, dispatcher: KeyDispatcher, bridge: AsyncMock
    ) -> None:
        await activated(panel)
        result = dispatcher.dispatch(KeyEvent("Enter", target=KeyTarget.TEXT_INPUT))
        assert not result.consumed
        bridge.open_path.assert_not_called()

    @pytest.mark.asyncio
    async def test_enter_opens_selected(
        self, panel: DocumentPanel, dispatcher: KeyDispatcher, bridge: AsyncMock
    ) -> None:
        await activated(panel)
        dispatcher.dispatch(KeyEvent("ArrowDown"))
        assert dispatcher.dispatch(KeyEvent("Enter")).consumed
        await panel.wait_idle()
        bridge.open_path.assert_awaited_once_with("/docs/note-000.md")

    @pytest.mark.asyncio
    async def test_f_opens_containing_folder(
        self, panel: DocumentPanel, dispatcher: KeyDispatcher, bridge: AsyncMock, fake_commands: FakeCommands
    ) -> None:
        await activated(panel)
        panel.on_row_click(1)
        assert dispatcher.dispatch(KeyEvent("KeyF")).consumed
        await panel.wait_idle()
        assert ("get_containing_folder", "/docs/note-001.md") in fake_commands.calls
        bridge.open_path.assert_awaited_once_with("/docs")

    @pytest.mark.asyncio
    async def test_c_copies_path(self, panel: DocumentPanel, dispatcher: KeyDispatcher, bridge: AsyncMock) -> None:
        await activated(panel)
        panel.on_row_click(2)
        assert dispatcher.dispatch(KeyEvent("KeyC")).consumed
        await panel.wait_idle()
        bridge.copy_text.assert_awaited_once_with("/docs/note-002.md")

    @pytest.mark.asyncio
    async def test_escape_resets_query(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.set_query("report")
        panel.add_tag("work")
        await panel.wait_idle()
        panel.on_row_click(0)

        assert dispatcher.dispatch(KeyEvent("Escape")).consumed

        assert panel.query == ""
        assert panel.tags == ()
        assert panel.selection.index == -1

    @pytest.mark.asyncio
    async def test_escape_queues_one_reset(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.set_query("report")
        await panel.wait_idle()
        panel.on_row_click(0)
        panel.selection.take_commands()

        dispatcher.dispatch(KeyEvent("Escape"))

        assert panel.selection.take_commands() == [FocusInput(), ScrollToIndex(0)]

    @pytest.mark.asyncio
    async def test_escape_on_listing_still_resets(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.on_row_click(2)
        panel.selection.take_commands()

        dispatcher.dispatch(KeyEvent("Escape"))

        assert panel.selection.index == -1
        assert panel.selection.take_commands() == [FocusInput(), ScrollToIndex(0)]

    @pytest.mark.asyncio
    async def test_t_adds_tag_of_selected(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.on_row_click(0)
        assert dispatcher.dispatch(KeyEvent("KeyT")).consumed
        assert panel.tags == ("even",)

    @pytest.mark.asyncio
    async def test_inactive_panel_ignores_keys(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.active = False
        assert not dispatcher.dispatch(KeyEvent("ArrowDown")).consumed
        assert panel.selection.index == -1

    @pytest.mark.asyncio
    async def test_close_unregisters_handlers(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.close()
        assert len(dispatcher) == 0

    @pytest.mark.asyncio
    async def test_modified_letters_are_not_shortcuts(self, panel: DocumentPanel, dispatcher: KeyDispatcher) -> None:
        await activated(panel)
        panel.on_row_click(0)
        assert not dispatcher.dispatch(KeyEvent("KeyC", Modifiers(ctrl=True))).consumed
