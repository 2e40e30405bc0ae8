"""Watch and job state synchronization.

This module merges a one-shot backend snapshot with the continuous push
channel into the single ``WatchState`` value the watch panel reads, and
signals "documents changed" when the snapshot shows jobs that already
finished.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from ..commands import CommandFacade, Unlisten
from .models import WatchState

logger = logging.getLogger(__name__)

WatchStateListener = Callable[[WatchState], None]


class WatchSynchronizer:
    """Holds the process-wide watch state and keeps it in sync with the backend.

    Every snapshot or push payload replaces the held ``WatchState`` as a whole.
    Only the initial snapshot is checked for finished jobs unless
    ``invalidate_on_push_finish`` is set.
    """

    def __init__(
        self,
        commands: CommandFacade,
        on_documents_changed: Callable[[], None],
        channel: str = "watches",
        refresh_seconds: float = 0.0,
        attach_retry_seconds: float = 1.0,
        invalidate_on_push_finish: bool = False,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            commands: Backend facade
            on_documents_changed: Called when finished jobs imply changed documents
            channel: Name of the push channel carrying WatchState payloads
            refresh_seconds: Interval of periodic re-snapshots (0 disables them)
            attach_retry_seconds: Delay between push channel attach attempts
            invalidate_on_push_finish: Also signal document changes when a push
                update reports a newly finished job
        """
        self.commands = commands
        self.on_documents_changed = on_documents_changed
        self.channel = channel
        self.refresh_seconds = refresh_seconds
        self.attach_retry_seconds = attach_retry_seconds
        self.invalidate_on_push_finish = invalidate_on_push_finish

        self._state = WatchState()
        self._listeners: list[WatchStateListener] = []
        self._unlisten: Unlisten | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._running = False

        # Performance metrics tracking
        self._poll_times: list[float] = []
        self._poll_count = 0
        self._metrics_log_interval = 10  # Log metrics every 10 cycles

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def is_attached(self) -> bool:
        return self._unlisten is not None

    def subscribe(self, listener: WatchStateListener) -> Callable[[], None]:
        """Register a listener receiving every published state."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: WatchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _spawn(self, coro: Any, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start(self) -> None:
        """Fetch the snapshot and attach to the push channel concurrently."""
        if self._running:
            logger.warning("WatchSynchronizer already running")
            return
        self._running = True
        self._spawn(self._load_snapshot(initial=True), "watch-snapshot")
        self._spawn(self._attach(), "watch-attach")
        if self.refresh_seconds > 0:
            self._spawn(self._refresh_loop(), "watch-refresh")
        logger.info(f"WatchSynchronizer started on channel {self.channel!r}")

    async def _load_snapshot(self, initial: bool) -> None:
        try:
            state = await self.commands.get_watch_state()
        except Exception as err:
            logger.warning(f"Failed to fetch watch state snapshot: {err}")
            return
        if not self._running:
            return
        if initial and state.has_finished_jobs:
            logger.info("Snapshot reports finished jobs, invalidating documents")
            self.on_documents_changed()
        self._publish(state)

    async def _attach(self) -> None:
        while self._running:
            try:
                unlisten = await self.commands.listen(self.channel, self._on_push)
            except Exception as err:
                logger.warning(
                    f"Failed to attach to channel {self.channel!r}: {err}, "
                    f"retrying in {self.attach_retry_seconds}s"
                )
                await asyncio.sleep(self.attach_retry_seconds)
                continue
            if self._running:
                self._unlisten = unlisten
                logger.debug(f"Attached to channel {self.channel!r}")
            else:
                self._detach(unlisten)
            return

    async def _refresh_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.refresh_seconds)
            start_time = time.perf_counter()
            await self._load_snapshot(initial=False)
            self._poll_times.append((time.perf_counter() - start_time) * 1000)
            self._poll_count += 1

            if (
                logger.isEnabledFor(logging.DEBUG)
                and self._poll_count % self._metrics_log_interval == 0
                and self._poll_times
            ):
                logger.debug(
                    "WatchSynchronizer metrics",
                    extra={
                        "extra_context": {
                            "poll_count": self._poll_count,
                            "min_poll_ms": round(min(self._poll_times), 2),
                            "max_poll_ms": round(max(self._poll_times), 2),
                            "avg_poll_ms": round(sum(self._poll_times) / len(self._poll_times), 2),
                        }
                    },
                )
                self._poll_times.clear()

    def _on_push(self, state: WatchState) -> None:
        if not self._running:
            return
        if self.invalidate_on_push_finish:
            newly_finished = state.finished_jobs - self._state.finished_jobs
            if newly_finished:
                logger.info(f"Push update reports {len(newly_finished)} finished job(s)")
                self.on_documents_changed()
        self._publish(state)

    def _detach(self, unlisten: Unlisten) -> None:
        try:
            unlisten()
        except Exception as err:
            logger.debug(f"Ignoring error while detaching from {self.channel!r}: {err}")

    def stop(self) -> None:
        """Cancel pending work and detach from the push channel.

        Safe to call any number of times, before or after ``start``.
        """
        self._running = False
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        unlisten, self._unlisten = self._unlisten, None
        if unlisten is not None:
            self._detach(unlisten)
            logger.info("WatchSynchronizer stopped")

    async def wait_idle(self) -> None:
        """Wait for the snapshot and attach tasks; the refresh loop is not awaited."""
        pending = [task for task in self._tasks if task.get_name() != "watch-refresh"]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
