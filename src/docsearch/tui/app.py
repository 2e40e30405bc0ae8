"""Main TUI application wiring the view-model layer to the terminal.

This module provides the TUIApp class that builds the result cache, the
watch synchronizer and both panels, routes decoded key events through the
dispatcher, executes selection commands against the list viewport, and
renders everything with rich's Live display.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
import termios
from collections.abc import Iterable

from rich.console import Console
from rich.layout import Layout
from rich.live import Live

from ..commands import CommandFacade
from ..utils import Config
from .document_actions import DocumentActions, OSBridge, SystemBridge
from .document_panel import DocumentPanel
from .keybindings import KeyDispatcher, KeyEvent, KeyTarget, Modifiers
from .models import WatchState
from .notifications import NotificationCenter
from .query_cache import QueryCache
from .selection import BlurInput, FocusInput, ScrollIntoView, ScrollToIndex
from .terminal import TerminalController, decode_keys
from .tui_utils import get_terminal_size
from .views.footer_bar import DOCUMENT_HINTS, WATCH_HINTS, render_footer_bar
from .views.result_list import ListViewport, render_result_list
from .views.search_bar import render_search_bar
from .views.watch_list import render_watch_list
from .watch_actions import WatchActions
from .watch_panel import WatchPanel
from .watch_sync import WatchSynchronizer

logger = logging.getLogger(__name__)

GLOBAL_PRIORITY = 100
# Search bar (3) + panel border (2) + table header (1) + footer (1).
CHROME_ROWS = 7


class TUIApp:
    """Main TUI application controller."""

    def __init__(
        self,
        config: Config,
        commands: CommandFacade,
        watch_paths: Iterable[str] = (),
        bridge: OSBridge | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize TUI application.

        Args:
            config: Application configuration
            commands: Backend facade
            watch_paths: Folders to add as watches on startup
            bridge: OS effects used by document actions
            console: Rich console to render on
        """
        self.config = config
        self.commands = commands
        self.console = console or Console()
        self.watch_paths = list(watch_paths)

        self.dispatcher = KeyDispatcher()
        self.notifications = NotificationCenter(config.notification_seconds)
        self.cache = QueryCache(commands, config.page_size)
        self.synchronizer = WatchSynchronizer(
            commands,
            on_documents_changed=self.cache.invalidate_all,
            channel=config.push_channel,
            refresh_seconds=config.watch_refresh_seconds,
            attach_retry_seconds=config.attach_retry_seconds,
            invalidate_on_push_finish=config.invalidate_on_push_finish,
        )
        self.watch_actions = WatchActions(commands, self.notifications)
        self.document_panel = DocumentPanel(
            self.cache,
            DocumentActions(commands, bridge or SystemBridge()),
            self.dispatcher,
        )
        self.watch_panel = WatchPanel(self.synchronizer, self.watch_actions, self.dispatcher)
        self._global_subscription = self.dispatcher.register(self.handle_global_key, GLOBAL_PRIORITY, "global")

        self.viewport = ListViewport()
        self.input_focused = True
        self.watch_tab = False
        self.should_quit = False
        self._dirty = asyncio.Event()
        self._watch_state = self.synchronizer.state
        self._unsubscribes = [
            self.document_panel.subscribe(self._on_change),
            self.watch_panel.subscribe(self._on_change),
            self.synchronizer.subscribe(self._on_watch_state),
        ]

        self.min_terminal_cols = config.tui_min_terminal_cols
        self.min_terminal_rows = config.tui_min_terminal_rows
        self.terminal_width, self.terminal_height = get_terminal_size()
        self.current_error: str | None = None

    @property
    def key_target(self) -> KeyTarget:
        if self.input_focused and not self.watch_tab:
            return KeyTarget.TEXT_INPUT
        return KeyTarget.OTHER

    def handle_global_key(self, code: str, modifiers: Modifiers) -> bool:
        """Application-wide bindings: quit, tab switch, retry."""
        if code == "KeyC" and modifiers.ctrl:
            self.should_quit = True
            return True
        if code == "Tab":
            self.switch_tab()
            return True
        if code == "KeyR" and modifiers.ctrl:
            self.document_panel.retry()
            return True
        return False

    def switch_tab(self) -> None:
        self.watch_tab = not self.watch_tab
        self.watch_panel.active = self.watch_tab
        self.document_panel.active = not self.watch_tab
        logger.debug(f"Switched to {'watches' if self.watch_tab else 'documents'} tab")

    def handle_key(self, event: KeyEvent) -> None:
        """Dispatch one key and apply its native effect when allowed."""
        event = dataclasses.replace(event, target=self.key_target)
        result = self.dispatcher.dispatch(event)
        if not result.prevent_default:
            self.document_panel.apply_text_input(event)
        self._apply_selection_commands()
        self._dirty.set()

    def _apply_selection_commands(self) -> None:
        for command in self.document_panel.selection.take_commands():
            if isinstance(command, ScrollIntoView):
                self.viewport.scroll_into_view(command.index, command.align)
            elif isinstance(command, ScrollToIndex):
                self.viewport.scroll_to(command.index)
            elif isinstance(command, FocusInput):
                self.input_focused = True
            elif isinstance(command, BlurInput):
                self.input_focused = False
        # The watch list always fits; its scroll commands have nothing to do.
        self.watch_panel.selection.take_commands()

    def _on_change(self) -> None:
        self._apply_selection_commands()
        count = len(self.document_panel.engine.items)
        self.viewport.clamp(count)
        if self.viewport.end_reached(count):
            self.document_panel.on_end_reached(count - 1)
        self._dirty.set()

    def _on_watch_state(self, state: WatchState) -> None:
        """Reload results when a watch settles, disappears or a job stops running."""
        previous, self._watch_state = self._watch_state, state
        if state.documents_changed_since(previous):
            logger.info("Watch state transition changed documents, reloading results")
            self.cache.invalidate_all()

    def _on_stdin(self, terminal: TerminalController) -> None:
        try:
            data = terminal.read_available()
        except OSError as err:
            logger.warning(f"Error reading keyboard input: {err}")
            return
        if not data:
            self.should_quit = True
            self._dirty.set()
            return
        for event in decode_keys(data):
            self.handle_key(event)

    def _check_terminal_size(self) -> bool:
        """Check if terminal meets minimum size requirements.

        Returns:
            True if terminal is large enough, False otherwise
        """
        self.terminal_width, self.terminal_height = get_terminal_size()
        return (
            self.terminal_width >= self.min_terminal_cols
            and self.terminal_height >= self.min_terminal_rows
        )

    def _update_viewport_height(self) -> None:
        rows_per_item = 2 if self.document_panel.query.strip() else 1
        self.viewport.height = max(1, (self.terminal_height - CHROME_ROWS) // rows_per_item)

    def _build_layout(self) -> Layout:
        """Build the layout: search bar, active tab, footer.

        Returns:
            Rich Layout with all panels rendered
        """
        layout = Layout()
        layout.split_column(
            Layout(name="search", size=3),
            Layout(name="main", ratio=1),
            Layout(name="footer", size=1),
        )

        results = self.document_panel.view()
        layout["search"].update(render_search_bar(results))
        if self.watch_tab:
            layout["main"].update(render_watch_list(self.watch_panel.view(), self.terminal_width))
            hints = WATCH_HINTS
        else:
            layout["main"].update(render_result_list(results, self.viewport, self.terminal_width))
            hints = DOCUMENT_HINTS

        layout["footer"].update(
            render_footer_bar(
                hints=hints,
                notification=self.notifications.current,
                error_message=self.current_error,
                terminal_width=self.terminal_width,
            )
        )
        return layout

    def _refresh(self) -> Layout:
        if self._check_terminal_size():
            self.current_error = None
        else:
            self.current_error = (
                f"Terminal too small! Need {self.min_terminal_cols}x"
                f"{self.min_terminal_rows}, got {self.terminal_width}x"
                f"{self.terminal_height}"
            )
        self._update_viewport_height()
        # A taller viewport may reveal the end of the list.
        count = len(self.document_panel.engine.items)
        if self.viewport.end_reached(count):
            self.document_panel.on_end_reached(count - 1)
        return self._build_layout()

    def start(self) -> None:
        """Start background synchronization and the initial loads."""
        self.synchronizer.start()
        self.document_panel.activate()
        self.watch_panel.activate()
        for path in self.watch_paths:
            self.watch_panel.add_watch(path)
        self._apply_selection_commands()

    async def run(self) -> int:
        """Run the main TUI event loop.

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        loop = asyncio.get_running_loop()
        try:
            terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
        except termios.error as err:
            self.console.print(f"[red]Error: stdin is not a terminal ({err})[/red]")
            return 1

        interval = 1.0 / self.config.tui_refresh_per_second
        try:
            self.start()
            with terminal.raw_mode():
                loop.add_reader(terminal.stdin_fd, self._on_stdin, terminal)
                try:
                    with Live(
                        self._refresh(),
                        console=self.console,
                        refresh_per_second=self.config.tui_refresh_per_second,
                        screen=True,
                    ) as live:
                        logger.info("TUI main loop started")
                        while not self.should_quit:
                            try:
                                await asyncio.wait_for(self._dirty.wait(), timeout=interval)
                            except TimeoutError:
                                pass
                            self._dirty.clear()
                            live.update(self._refresh())
                finally:
                    loop.remove_reader(terminal.stdin_fd)

            logger.info("TUI main loop exited")
            return 0

        except KeyboardInterrupt:
            logger.info("TUI interrupted by user")
            return 130

        except Exception as err:
            logger.error(f"TUI crashed: {err}", exc_info=True)
            self.console.print(f"[red]Error: {err}[/red]")
            return 1

        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop synchronization and release every subscription."""
        logger.info("Shutting down TUI")
        self.synchronizer.stop()
        self._global_subscription.unsubscribe()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self.document_panel.close()
        self.watch_panel.close()
