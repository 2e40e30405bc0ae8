"""TUI utility functions for formatting and display helpers."""

import html
import re
import shutil
from datetime import UTC, datetime

_TAG_RE = re.compile(r"<[^>]+>")


def truncate_text(text: str, max_len: int) -> str:
    """
    Truncate text to max length, adding ellipsis if needed.

    Args:
        text: Text to truncate
        max_len: Maximum length including ellipsis

    Returns:
        Truncated text with "..." suffix if text exceeds max_len

    Examples:
        >>> truncate_text("short", 10)
        'short'
        >>> truncate_text("this is a long text", 10)
        'this is...'
    """
    if len(text) <= max_len:
        return text

    if max_len <= 3:
        return "..."[:max_len]

    return text[: max_len - 3] + "..."


def format_count(count: int, noun: str) -> str:
    """
    Format a count with a naively pluralized noun.

    Examples:
        >>> format_count(1, "document")
        '1 document'
        >>> format_count(12, "document")
        '12 documents'
    """
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def format_timestamp(value: datetime, now: datetime | None = None) -> str:
    """
    Format a timestamp as a short local date, with the time for today.

    Args:
        value: Timestamp to format
        now: Reference time (defaults to the current time)

    Returns:
        "HH:MM" for timestamps from today, "YYYY-MM-DD" otherwise
    """
    now = now or datetime.now(UTC)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    local = value.astimezone(now.tzinfo)
    if local.date() == now.date():
        return local.strftime("%H:%M")
    return local.strftime("%Y-%m-%d")


def split_highlight(markup: str) -> list[tuple[str, bool]]:
    """
    Split ``<b>``-highlight markup into (text, highlighted) runs.

    Other tags are dropped and entities are unescaped.

    Examples:
        >>> split_highlight("a <b>report</b> here")
        [('a ', False), ('report', True), (' here', False)]
    """
    runs: list[tuple[str, bool]] = []
    bold = False
    position = 0
    for match in _TAG_RE.finditer(markup):
        if match.start() > position:
            runs.append((html.unescape(markup[position : match.start()]), bold))
        tag = match.group(0).lower()
        if tag == "<b>":
            bold = True
        elif tag == "</b>":
            bold = False
        position = match.end()
    if position < len(markup):
        runs.append((html.unescape(markup[position:]), bold))
    return runs


def get_terminal_size() -> tuple[int, int]:
    """
    Get terminal size as (columns, rows) tuple.

    Returns:
        Tuple of (columns, rows), defaults to (80, 24) if unavailable
    """
    try:
        size = shutil.get_terminal_size(fallback=(80, 24))
        return (size.columns, size.lines)
    except OSError:
        return (80, 24)
