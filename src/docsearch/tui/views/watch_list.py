"""Watch list renderer.

This module provides the render_watch_list function that displays watched
folders with their document counts and, for running jobs, a progress bar.
"""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from ..models import JobType
from ..tui_utils import format_count, format_timestamp, truncate_text
from ..watch_panel import WatchPanelView, WatchRowView

JOB_LABELS = {
    JobType.SCAN: "Scanning",
    JobType.DELETE: "Removing",
    JobType.SYNC: "Syncing",
}


def _status_cell(row: WatchRowView) -> RenderableType:
    if row.progress is None or row.job_type is None:
        return Text(row.watch.status.value, style="dim" if row.disabled else "green")
    progress = row.progress
    grid = Table.grid(padding=(0, 1))
    grid.add_column(width=9)
    grid.add_column(width=20)
    grid.add_column()
    grid.add_row(
        JOB_LABELS[row.job_type],
        ProgressBar(total=max(progress.total, 1), completed=progress.done, width=20),
        f"{progress.done}/{progress.total}",
    )
    return grid


def render_watch_list(view: WatchPanelView, terminal_width: int = 80) -> Panel:
    """Build Rich Panel listing the watched folders.

    Args:
        view: Watch panel snapshot
        terminal_width: Terminal width for truncation calculations

    Returns:
        Rich Panel component ready for rendering
    """
    parts: list[RenderableType] = []

    if view.rows:
        table = Table(box=None, expand=True, header_style="bold cyan", pad_edge=False)
        table.add_column("Folder", ratio=4)
        table.add_column("Documents", justify="right", width=14)
        table.add_column("Added", justify="right", width=10)
        table.add_column("Status", ratio=3)
        path_width = max(10, terminal_width // 2)
        for index, row in enumerate(view.rows):
            styles = []
            if row.disabled:
                styles.append("dim")
            if index == view.selection.index:
                styles.append("reverse")
            table.add_row(
                truncate_text(row.watch.path, path_width),
                format_count(row.watch.document_count, "document"),
                format_timestamp(row.watch.created_at),
                _status_cell(row),
                style=" ".join(styles),
            )
        parts.append(table)
    else:
        parts.append(Text("No folders are watched yet", style="dim italic"))

    if view.recommendations:
        parts.append(Text(""))
        parts.append(Text("Suggested folders (press a to add them):", style="bold"))
        for recommendation in view.recommendations:
            parts.append(Text(f"  {recommendation.path} [{recommendation.kind}]", style="cyan"))

    return Panel(Group(*parts), title="Watched folders", border_style="cyan")
