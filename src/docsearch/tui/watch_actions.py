"""Watch mutations and first-run path recommendations.

Failures never propagate out of these operations: validation errors and
unknown errors alike become a transient notification, and the result cache is
left alone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..commands import CommandFacade
from .exceptions import AddWatchError, AddWatchErrorKind
from .models import PathRecommendation, Watch
from .notifications import NotificationCenter

logger = logging.getLogger(__name__)


def classify_add_watch_error(err: BaseException) -> AddWatchErrorKind:
    """Map any add-watch failure to the user-facing error kind."""
    if isinstance(err, AddWatchError):
        return err.kind
    return AddWatchErrorKind.OTHER


class WatchActions:
    """Issues watch commands and reports their failures to the user."""

    def __init__(self, commands: CommandFacade, notifications: NotificationCenter) -> None:
        self.commands = commands
        self.notifications = notifications
        self.recommendations: list[PathRecommendation] = []

    async def add_watch(self, path: str) -> Watch | None:
        """Add one watch.

        Returns:
            The created watch, or None if the backend refused it
        """
        try:
            watch = await self.commands.add_watch(path)
        except AddWatchError as err:
            logger.info(f"Add watch rejected for {path}: {err.kind.value}")
            self.notifications.push_watch_error(err.kind)
            return None
        except Exception as err:
            logger.warning(f"Add watch failed for {path}: {err}", exc_info=True)
            self.notifications.push_watch_error(classify_add_watch_error(err))
            return None
        logger.info(f"Watch {watch.id} added for {watch.path}")
        return watch

    async def add_watches(self, paths: Iterable[str]) -> list[Watch]:
        """Add one watch per path, in order; failures do not stop the rest."""
        added: list[Watch] = []
        for path in paths:
            watch = await self.add_watch(path)
            if watch is not None:
                added.append(watch)
        return added

    async def delete_watch(self, watch: Watch) -> bool:
        """Delete a watch if its status allows it.

        Returns:
            True if the delete command was issued successfully
        """
        if not watch.can_delete:
            return False
        try:
            await self.commands.delete_watch(watch.path)
        except Exception as err:
            logger.warning(f"Delete watch failed for {watch.path}: {err}")
            self.notifications.push("Could not remove folder", str(err) or "An unexpected error occurred.")
            return False
        return True

    async def load_recommendations(self) -> list[PathRecommendation]:
        """Fetch path recommendations when no watch exists yet."""
        try:
            watches = await self.commands.list_watches()
            if watches:
                self.recommendations = []
            else:
                self.recommendations = await self.commands.get_path_recommendations()
        except Exception as err:
            logger.warning(f"Failed to load path recommendations: {err}")
            self.recommendations = []
        return self.recommendations

    async def accept_recommendations(self) -> list[Watch]:
        """Add a watch for every recommended path and clear the list."""
        recommendations, self.recommendations = self.recommendations, []
        return await self.add_watches(rec.path for rec in recommendations)
