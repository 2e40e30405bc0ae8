"""Tests for the result list viewport and the panel renderers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from rich.console import Console, RenderableType
from rich.panel import Panel

from docsearch.tui.document_panel import ResultsView
from docsearch.tui.models import (
    JobProgress,
    JobReport,
    JobStatus,
    JobType,
    PathRecommendation,
    ResultItem,
    SelectionState,
    SortMode,
    ViewStatus,
    Watch,
    WatchState,
    WatchStatus,
)
from docsearch.tui.selection import Alignment
from docsearch.tui.views.result_list import ListViewport, render_result_list
from docsearch.tui.views.search_bar import render_search_bar
from docsearch.tui.views.watch_list import render_watch_list
from docsearch.tui.watch_panel import WatchPanelView, WatchRowView

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def render(renderable: RenderableType, width: int = 100) -> str:
    console = Console(record=True, width=width, color_system=None)
    console.print(renderable)
    return console.export_text()


def make_items(count: int, highlight: str | None = None) -> tuple[ResultItem, ...]:
    return tuple(
        ResultItem(
            path=f"/docs/note-{index:03d}.md",
            display_title=None,
            tags=frozenset({"work"}),
            created_at=NOW,
            modified_at=NOW,
            highlight=highlight,
        )
        for index in range(count)
    )


def make_view(
    status: ViewStatus = ViewStatus.READY,
    items: tuple[ResultItem, ...] = (),
    selected: int = -1,
    **kwargs,
) -> ResultsView:
    defaults = {
        "total_count": len(items),
        "query": "",
        "tags": (),
        "sort": SortMode.RELEVANCE,
        "show_sort": False,
        "has_more": False,
    }
    defaults.update(kwargs)
    return ResultsView(status=status, items=items, selection=SelectionState(index=selected), **defaults)


class TestListViewport:
    """Tests for ListViewport scrolling."""

    def test_visible_row_does_not_scroll(self) -> None:
        viewport = ListViewport(height=5, offset=0)
        viewport.scroll_into_view(3, Alignment.START)
        assert viewport.offset == 0

    def test_start_alignment_puts_row_at_top(self) -> None:
        viewport = ListViewport(height=5, offset=0)
        viewport.scroll_into_view(7, Alignment.START)
        assert viewport.offset == 7

    def test_end_alignment_puts_row_at_bottom(self) -> None:
        viewport = ListViewport(height=5, offset=10)
        viewport.scroll_into_view(2, Alignment.END)
        assert viewport.offset == 0
        viewport.offset = 10
        viewport.scroll_into_view(8, Alignment.END)
        assert viewport.offset == 4

    def test_clamp_after_shrink(self) -> None:
        viewport = ListViewport(height=5, offset=20)
        viewport.clamp(12)
        assert viewport.offset == 7
        viewport.clamp(3)
        assert viewport.offset == 0

    def test_visible_range(self) -> None:
        viewport = ListViewport(height=5, offset=8)
        assert viewport.visible_range(10) == range(8, 10)

    @pytest.mark.parametrize(
        ("offset", "count", "expected"),
        [(0, 0, False), (0, 5, True), (0, 10, False), (5, 10, True)],
    )
    def test_end_reached(self, offset: int, count: int, expected: bool) -> None:
        assert ListViewport(height=5, offset=offset).end_reached(count) is expected


class TestRenderResultList:
    """Tests for render_result_list."""

    def test_returns_panel(self) -> None:
        assert isinstance(render_result_list(make_view(items=make_items(3)), ListViewport()), Panel)

    def test_rows_and_more_indicators(self) -> None:
        view = make_view(items=make_items(20), selected=6)
        output = render(render_result_list(view, ListViewport(height=5, offset=5)))
        assert "note-005" in output
        assert "note-009" in output
        assert "note-010" not in output
        assert "↑ 5 more above" in output
        assert "↓ 10 more below" in output

    def test_highlight_shown_for_search_results(self) -> None:
        view = make_view(items=make_items(1, highlight="the <b>report</b> body"))
        assert "the report body" in render(render_result_list(view, ListViewport()))

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (ViewStatus.LOADING, "Loading..."),
            (ViewStatus.EMPTY, "No documents found"),
            (ViewStatus.ERROR, "Ctrl-R to retry"),
        ],
    )
    def test_status_messages(self, status: ViewStatus, expected: str) -> None:
        assert expected in render(render_result_list(make_view(status=status), ListViewport()))

    def test_error_keeps_loaded_rows(self) -> None:
        view = make_view(status=ViewStatus.ERROR, items=make_items(2), error_message="backend down")
        output = render(render_result_list(view, ListViewport()))
        assert "note-001" in output
        assert "backend down" in output


class TestRenderSearchBar:
    """Tests for render_search_bar."""

    def test_query_tags_and_sort(self) -> None:
        view = make_view(query="report", tags=("work", "q3"), show_sort=True, sort=SortMode.DATE)
        output = render(render_search_bar(view))
        assert "report" in output
        assert "#work" in output
        assert "#q3" in output
        assert "sort: date" in output

    def test_placeholder_when_list_has_focus(self) -> None:
        view = make_view(items=make_items(1), selected=0)
        assert "Search documents" in render(render_search_bar(view))

    def test_sort_hidden_without_text(self) -> None:
        assert "sort:" not in render(render_search_bar(make_view(tags=("work",))))


class TestRenderWatchList:
    """Tests for render_watch_list."""

    def test_rows_progress_and_recommendations(self) -> None:
        state = WatchState(
            watches=(
                Watch(1, "/home/u/notes", WatchStatus.ACTIVE, NOW, document_count=12),
                Watch(2, "/home/u/papers", WatchStatus.ADDING, NOW),
            ),
            job_reports=(JobReport(2, JobProgress(3, 9), JobType.SCAN, JobStatus.RUNNING),),
        )
        view = WatchPanelView(
            rows=tuple(WatchRowView.build(watch, state) for watch in state.watches),
            selection=SelectionState(index=0),
            recommendations=(PathRecommendation("/home/u/Documents", "documents"),),
        )
        output = render(render_watch_list(view), width=120)
        assert "/home/u/notes" in output
        assert "12 documents" in output
        assert "Scanning" in output
        assert "3/9" in output
        assert "/home/u/Documents" in output

    def test_empty_state(self) -> None:
        view = WatchPanelView(rows=(), selection=SelectionState(), recommendations=())
        assert "No folders are watched yet" in render(render_watch_list(view))
