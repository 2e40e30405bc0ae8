"""Footer bar renderer for notifications and key hints.

This module provides the render_footer_bar function that displays the current
notification (or an error message) followed by the key hints of the active tab.
"""

from __future__ import annotations

from rich.text import Text

from ..notifications import Notification
from ..tui_utils import truncate_text

DOCUMENT_HINTS = "↑/↓ move · Enter open · f folder · c copy · t tag · Esc reset · Tab watches"
WATCH_HINTS = "↑/↓ move · d remove · a add suggested · Tab documents"


def render_footer_bar(
    hints: str,
    notification: Notification | None = None,
    error_message: str | None = None,
    terminal_width: int = 80,
) -> Text:
    """Build Rich Text displaying the footer bar.

    Args:
        hints: Key hints of the active tab
        notification: Notification currently on screen, if any
        error_message: Error message to display when no notification is shown
        terminal_width: Terminal width for truncation calculations

    Returns:
        Rich Text component ready for rendering
    """
    parts: list[tuple[str, str]] = []

    if notification is not None:
        message = f"{notification.title}: {notification.message}"
        parts.append((message, "bold red"))
    elif error_message:
        parts.append((error_message, "red"))

    # Hints take whatever the message leaves, never less than a short tail.
    separator = " | " if parts else ""
    if parts:
        available = terminal_width - len(separator) - min(len(hints), 20)
        text, style = parts[0]
        parts[0] = (truncate_text(text, max(available, 10)), style)
        parts.append((separator, "dim"))
    used = sum(len(text) for text, _ in parts)
    parts.append((truncate_text(hints, max(terminal_width - used, 0)), "cyan"))

    footer = Text()
    for text, style in parts:
        footer.append(text, style=style)
    return footer
