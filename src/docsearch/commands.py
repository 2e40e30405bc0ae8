"""Backend command facade used by the view-model layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from .tui.models import (
    PathRecommendation,
    ResultPage,
    SortMode,
    Watch,
    WatchState,
)

WatchStateHandler = Callable[[WatchState], None]
Unlisten = Callable[[], None]


class CommandFacade(ABC):
    """Abstract base class for the asynchronous backend contract.

    Every method is a suspension point on the event loop. Implementations raise
    ``AddWatchError`` for add-watch validation failures; any other exception is
    treated by callers as a transport or unknown error.
    """

    @abstractmethod
    async def list_all(self, offset: int, limit: int) -> ResultPage:
        """Unfiltered listing of all documents."""

    @abstractmethod
    async def search(
        self,
        text: str,
        tags: Sequence[str],
        sort: SortMode,
        offset: int,
        limit: int,
    ) -> ResultPage:
        """Filtered, ranked listing."""

    @abstractmethod
    async def list_watches(self) -> list[Watch]:
        """Snapshot of all watches."""

    @abstractmethod
    async def get_watch_state(self) -> WatchState:
        """Snapshot of watches including job reports."""

    @abstractmethod
    async def add_watch(self, path: str) -> Watch:
        """Register a new watch.

        Raises:
            AddWatchError: If the path already is watched or is a parent or
                child of an existing watch
        """

    @abstractmethod
    async def delete_watch(self, path: str) -> None:
        """Remove the watch for ``path``; unknown paths are ignored."""

    @abstractmethod
    async def get_containing_folder(self, path: str) -> str:
        """Folder holding the document at ``path``."""

    @abstractmethod
    async def get_path_recommendations(self) -> list[PathRecommendation]:
        """First-run watch suggestions."""

    @abstractmethod
    async def listen(self, channel: str, handler: WatchStateHandler) -> Unlisten:
        """Attach ``handler`` to a push channel.

        Returns:
            Callable detaching the handler. Calling it more than once, or after
            the channel closed, must not raise.
        """
