"""Search bar renderer: query input, active tags and sort mode."""

from __future__ import annotations

from rich.panel import Panel
from rich.text import Text

from ..document_panel import ResultsView
from ..models import SortMode

SORT_LABELS = {
    SortMode.RELEVANCE: "relevance",
    SortMode.DATE: "date",
}


def render_search_bar(view: ResultsView) -> Panel:
    """Build Rich Panel showing the search input.

    The cursor is drawn only while the input has focus. The sort label is
    shown only when a text query is active.
    """
    text = Text()
    if view.query:
        text.append(view.query)
    elif not view.input_focused:
        text.append("Search documents", style="dim")
    if view.input_focused:
        text.append("█", style="blink")

    for tag in view.tags:
        text.append("  ")
        text.append(f"#{tag}", style="bold magenta")

    if view.show_sort:
        text.append("  ")
        text.append(f"sort: {SORT_LABELS[view.sort]}", style="cyan")

    border_style = "cyan" if view.input_focused else "dim"
    return Panel(text, title="Search", border_style=border_style, height=3)
