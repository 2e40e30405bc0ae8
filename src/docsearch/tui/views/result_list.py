"""Result list renderer with a scrolling viewport.

This module provides the ListViewport that executes the selection machine's
scroll commands and reports when the last loaded row becomes visible, and the
render_result_list function that builds the document table.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..document_panel import ResultsView
from ..models import ResultItem, ViewStatus
from ..selection import Alignment
from ..tui_utils import format_timestamp, split_highlight, truncate_text


@dataclass
class ListViewport:
    """Window of visible rows over the loaded items."""

    height: int = 10  # Number of rows that fit on screen
    offset: int = 0  # First visible row index

    def scroll_into_view(self, index: int, align: Alignment) -> None:
        """Bring ``index`` on screen; rows already visible do not scroll."""
        if self.offset <= index < self.offset + self.height:
            return
        if align == Alignment.START:
            self.offset = index
        else:
            self.offset = index - self.height + 1
        self.offset = max(0, self.offset)

    def scroll_to(self, index: int) -> None:
        self.offset = max(0, index)

    def clamp(self, count: int) -> None:
        """Keep the window inside ``count`` rows after the list shrank."""
        self.offset = max(0, min(self.offset, count - self.height))

    def visible_range(self, count: int) -> range:
        return range(self.offset, min(count, self.offset + self.height))

    def end_reached(self, count: int) -> bool:
        """True when the last loaded row is on screen."""
        return count > 0 and self.offset + self.height >= count


def _highlight_text(markup: str) -> Text:
    text = Text()
    for run, bold in split_highlight(markup):
        text.append(run, style="bold yellow" if bold else "dim")
    return text


def _title_cell(item: ResultItem, width: int) -> Text:
    title = Text(truncate_text(item.title, width), style="bold")
    if item.is_search_result and item.highlight:
        title.append("\n")
        title.append_text(_highlight_text(item.highlight))
    return title


def _status_message(view: ResultsView) -> Text | None:
    if view.status == ViewStatus.ERROR:
        message = view.error_message or "Failed to load results"
        return Text(f"{message} (Ctrl-R to retry)", style="red")
    if view.status == ViewStatus.LOADING:
        return Text("Loading...", style="dim italic")
    if view.status == ViewStatus.EMPTY:
        return Text("No documents found", style="dim italic")
    return None


def render_result_list(view: ResultsView, viewport: ListViewport, terminal_width: int = 80) -> Panel:
    """Build Rich Panel listing the visible rows of the result list.

    Args:
        view: Document panel snapshot
        viewport: Scroll window to render
        terminal_width: Terminal width for truncation calculations

    Returns:
        Rich Panel component ready for rendering
    """
    count = len(view.items)
    subtitle = f"{view.total_count} documents" if view.total_count else None

    message = _status_message(view)
    if message is not None and (view.status != ViewStatus.ERROR or count == 0):
        return Panel(message, title="Documents", subtitle=subtitle, border_style="dim")

    title_width = max(10, terminal_width // 2)
    table = Table(box=None, expand=True, show_header=True, header_style="bold cyan", pad_edge=False)
    table.add_column("Title", ratio=5, no_wrap=False)
    table.add_column("Tags", ratio=2)
    table.add_column("Modified", justify="right", width=10)

    for index in viewport.visible_range(count):
        item = view.items[index]
        style = "reverse" if index == view.selection.index else ""
        table.add_row(
            _title_cell(item, title_width),
            Text(", ".join(sorted(item.tags)), style="magenta"),
            format_timestamp(item.modified_at),
            style=style,
        )

    parts: list[RenderableType] = []
    if viewport.offset > 0:
        parts.append(Text(f"↑ {viewport.offset} more above", style="dim"))
    parts.append(table)
    hidden_below = count - viewport.offset - viewport.height
    if hidden_below > 0:
        parts.append(Text(f"↓ {hidden_below} more below", style="dim"))
    elif view.has_more and count:
        parts.append(Text("Loading more...", style="dim italic"))
    if message is not None:
        parts.append(message)

    return Panel(Group(*parts), title="Documents", subtitle=subtitle, border_style="cyan")
