"""Process-local document index implementing the command facade.

Documents are read from watched directories (front matter supplies the title
and tags), kept in memory, and served through the same listing and search
contract a remote backend would provide. Scan and delete jobs run as asyncio
tasks and push ``WatchState`` updates with their progress.
"""

from __future__ import annotations

import asyncio
import html
import itertools
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import frontmatter

from .commands import CommandFacade, Unlisten, WatchStateHandler
from .tui.exceptions import AddWatchError, AddWatchErrorKind, CommandError
from .tui.models import (
    JobProgress,
    JobReport,
    JobStatus,
    JobType,
    PathRecommendation,
    ResultItem,
    ResultPage,
    SortMode,
    Watch,
    WatchState,
    WatchStatus,
)
from .utils import DEFAULT_DOCUMENT_EXTENSIONS

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 40

DEFAULT_RECOMMENDATIONS = (
    ("~/Documents", "documents"),
    ("~/Notes", "notes"),
    ("~/Desktop", "desktop"),
)


@dataclass
class Document:
    """Indexed document."""

    path: str
    body: str = ""
    title: str | None = None
    tags: frozenset[str] = frozenset()
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    modified_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_item(self, highlight: str | None = None) -> ResultItem:
        return ResultItem(
            path=self.path,
            display_title=self.title,
            tags=self.tags,
            created_at=self.created_at,
            modified_at=self.modified_at,
            highlight=highlight,
        )


def is_parent(parent: Path, child: Path) -> bool:
    """Component-wise ancestry check; a path is not its own parent.

    Examples:
        >>> is_parent(Path("/a"), Path("/a/b"))
        True
        >>> is_parent(Path("/a"), Path("/ab"))
        False
        >>> is_parent(Path("/a"), Path("/a"))
        False
    """
    return len(parent.parts) < len(child.parts) and child.parts[: len(parent.parts)] == parent.parts


def _tags_from_metadata(metadata: dict[str, Any]) -> frozenset[str]:
    raw = metadata.get("tags", metadata.get("labels", ()))
    if isinstance(raw, str):
        raw = [part.strip() for part in raw.split(",")]
    return frozenset(str(tag) for tag in raw if str(tag).strip())


def read_document(path: Path) -> Document:
    """Load one file; YAML front matter may set ``title`` and ``tags``."""
    post = frontmatter.load(str(path))
    stat = path.stat()
    title = post.metadata.get("title")
    return Document(
        path=str(path),
        body=post.content,
        title=str(title) if title else None,
        tags=_tags_from_metadata(post.metadata),
        created_at=datetime.fromtimestamp(stat.st_ctime, UTC),
        modified_at=datetime.fromtimestamp(stat.st_mtime, UTC),
    )


def _terms(text: str) -> list[str]:
    return [term for term in text.lower().split() if term]


def _score(document: Document, terms: Sequence[str]) -> int:
    title = (document.title or "").lower()
    body = document.body.lower()
    path = document.path.lower()
    score = 0
    for term in terms:
        hits = 3 * title.count(term) + body.count(term) + path.count(term)
        if hits == 0:
            return 0
        score += hits
    return score


def highlight_snippet(body: str, terms: Sequence[str], radius: int = SNIPPET_RADIUS) -> str:
    """Escaped excerpt around the first matching term with matches in ``<b>``.

    Examples:
        >>> highlight_snippet("find the report here", ["report"])
        'find the <b>report</b> here'
    """
    lowered = body.lower()
    positions = [pos for pos in (lowered.find(term) for term in terms) if pos >= 0]
    if not positions:
        return ""
    first = min(positions)
    start = max(0, first - radius)
    end = min(len(body), first + radius)
    excerpt = " ".join(body[start:end].split())

    marked: list[str] = []
    index = 0
    lowered_excerpt = excerpt.lower()
    while index < len(excerpt):
        match = next(
            (term for term in sorted(terms, key=len, reverse=True) if lowered_excerpt.startswith(term, index)),
            None,
        )
        if match is None:
            marked.append(html.escape(excerpt[index]))
            index += 1
            continue
        marked.append(f"<b>{html.escape(excerpt[index : index + len(match)])}</b>")
        index += len(match)

    prefix = "…" if start > 0 else ""
    suffix = "…" if end < len(body) else ""
    return f"{prefix}{''.join(marked)}{suffix}"


class InMemoryBackend(CommandFacade):
    """Command facade serving an in-memory index of watched folders."""

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_DOCUMENT_EXTENSIONS,
        channel: str = "watches",
        recommendations: Sequence[tuple[str, str]] = DEFAULT_RECOMMENDATIONS,
        job_step_seconds: float = 0.0,
    ) -> None:
        """Initialize an empty backend.

        Args:
            extensions: File suffixes picked up by scans
            channel: Push channel carrying WatchState updates
            recommendations: (path, kind) candidates offered on first run
            job_step_seconds: Pause between files in scan and delete jobs
        """
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.channel = channel
        self.recommendations = tuple(recommendations)
        self.job_step_seconds = job_step_seconds

        self._documents: dict[str, Document] = {}
        self._watches: dict[int, Watch] = {}
        self._job_reports: dict[int, JobReport] = {}
        self._handlers: dict[str, list[WatchStateHandler]] = {}
        self._jobs: set[asyncio.Task[Any]] = set()
        self._ids = itertools.count(1)

    # Documents

    def add_document(self, document: Document) -> None:
        self._documents[document.path] = document

    @property
    def document_count(self) -> int:
        return len(self._documents)

    def _page(self, documents: list[Document], offset: int, limit: int, terms: Sequence[str] | None) -> ResultPage:
        window = documents[offset : offset + limit]
        items = tuple(
            doc.to_item(None if terms is None else highlight_snippet(doc.body, terms)) for doc in window
        )
        return ResultPage(offset=offset, items=items, total_count=len(documents))

    async def list_all(self, offset: int, limit: int) -> ResultPage:
        documents = sorted(self._documents.values(), key=lambda d: (-d.modified_at.timestamp(), d.path))
        return self._page(documents, offset, limit, None)

    async def search(
        self,
        text: str,
        tags: Sequence[str],
        sort: SortMode,
        offset: int,
        limit: int,
    ) -> ResultPage:
        terms = _terms(text)
        required = set(tags)
        scored: list[tuple[int, Document]] = []
        for document in self._documents.values():
            if not required <= document.tags:
                continue
            score = _score(document, terms) if terms else 1
            if score:
                scored.append((score, document))

        if sort == SortMode.DATE or not terms:
            scored.sort(key=lambda pair: (-pair[1].modified_at.timestamp(), pair[1].path))
        else:
            scored.sort(key=lambda pair: (-pair[0], -pair[1].modified_at.timestamp(), pair[1].path))
        return self._page([doc for _, doc in scored], offset, limit, terms)

    async def get_containing_folder(self, path: str) -> str:
        return str(Path(path).parent)

    # Watches

    async def list_watches(self) -> list[Watch]:
        return list(self._watches.values())

    async def get_watch_state(self) -> WatchState:
        return self._state()

    def _state(self) -> WatchState:
        return WatchState(
            watches=tuple(self._watches.values()),
            job_reports=tuple(self._job_reports.values()),
        )

    def _validate_watch_path(self, path: Path) -> None:
        existing = [Path(watch.path) for watch in self._watches.values()]
        if path in existing:
            raise AddWatchError(AddWatchErrorKind.WATCH_ALREADY_EXISTS, f"{path} is already watched")
        for other in existing:
            if is_parent(other, path) or is_parent(path, other):
                raise AddWatchError(
                    AddWatchErrorKind.PARENT_CHILD_RELATIONSHIP,
                    f"{path} overlaps the watched folder {other}",
                )

    async def add_watch(self, path: str) -> Watch:
        root = Path(os.path.expanduser(path)).resolve()
        self._validate_watch_path(root)
        if not root.is_dir():
            raise CommandError(f"{root} is not a directory")

        watch = Watch(
            id=next(self._ids),
            path=str(root),
            status=WatchStatus.ADDING,
            created_at=datetime.now(UTC),
        )
        self._watches[watch.id] = watch
        self._publish()
        self._start_job(self._scan(watch), f"scan-{watch.id}")
        return watch

    async def delete_watch(self, path: str) -> None:
        root = Path(os.path.expanduser(path)).resolve()
        watch = next((w for w in self._watches.values() if Path(w.path) == root), None)
        if watch is None:
            logger.debug(f"delete_watch ignored unknown path {root}")
            return
        self._replace_watch(watch, status=WatchStatus.DELETING)
        self._publish()
        self._start_job(self._delete(watch), f"delete-{watch.id}")

    async def get_path_recommendations(self) -> list[PathRecommendation]:
        found: list[PathRecommendation] = []
        for raw, kind in self.recommendations:
            candidate = Path(os.path.expanduser(raw))
            if candidate.is_dir():
                found.append(PathRecommendation(path=str(candidate.resolve()), kind=kind))
        return found

    def _replace_watch(self, watch: Watch, **changes: Any) -> Watch:
        current = self._watches.get(watch.id, watch)
        updated = Watch(
            id=current.id,
            path=current.path,
            status=changes.get("status", current.status),
            created_at=current.created_at,
            document_count=changes.get("document_count", current.document_count),
        )
        self._watches[watch.id] = updated
        return updated

    def _report(self, watch_id: int, job_type: JobType, status: JobStatus, done: int, total: int) -> None:
        self._job_reports[watch_id] = JobReport(
            watch_id=watch_id,
            progress=JobProgress(done=done, total=total),
            job_type=job_type,
            status=status,
        )
        self._publish()

    # Jobs

    def _start_job(self, coro: Any, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    def _collect(self, root: Path) -> list[Path]:
        return sorted(
            path for path in root.rglob("*") if path.is_file() and path.suffix.lower() in self.extensions
        )

    async def _scan(self, watch: Watch) -> None:
        root = Path(watch.path)
        files = await asyncio.to_thread(self._collect, root)
        logger.info(f"Scanning {root}: {len(files)} file(s)")
        self._report(watch.id, JobType.SCAN, JobStatus.RUNNING, 0, len(files))

        indexed = 0
        for done, path in enumerate(files, start=1):
            try:
                document = await asyncio.to_thread(read_document, path)
            except Exception as err:
                logger.warning(f"Skipping unreadable document {path}: {err}")
            else:
                self.add_document(document)
                indexed += 1
            self._report(watch.id, JobType.SCAN, JobStatus.RUNNING, done, len(files))
            await asyncio.sleep(self.job_step_seconds)

        self._replace_watch(watch, status=WatchStatus.ACTIVE, document_count=indexed)
        self._report(watch.id, JobType.SCAN, JobStatus.FINISHED, len(files), len(files))
        # A finished report is published once, then dropped.
        self._job_reports.pop(watch.id, None)
        self._publish()

    async def _delete(self, watch: Watch) -> None:
        root = Path(watch.path)
        doomed = [path for path in self._documents if is_parent(root, Path(path))]
        self._report(watch.id, JobType.DELETE, JobStatus.RUNNING, 0, len(doomed))
        for done, path in enumerate(doomed, start=1):
            self._documents.pop(path, None)
            self._report(watch.id, JobType.DELETE, JobStatus.RUNNING, done, len(doomed))
            await asyncio.sleep(self.job_step_seconds)
        # Watch and report leave in the same update.
        self._watches.pop(watch.id, None)
        self._job_reports.pop(watch.id, None)
        self._publish()
        logger.info(f"Watch {watch.id} removed with {len(doomed)} document(s)")

    async def wait_for_jobs(self) -> None:
        """Wait until every scan and delete job finished."""
        while self._jobs:
            await asyncio.gather(*list(self._jobs), return_exceptions=True)

    def close(self) -> None:
        for task in list(self._jobs):
            task.cancel()
        self._jobs.clear()

    # Push channel

    def _publish(self) -> None:
        state = self._state()
        for handler in list(self._handlers.get(self.channel, ())):
            handler(state)

    async def listen(self, channel: str, handler: WatchStateHandler) -> Unlisten:
        handlers = self._handlers.setdefault(channel, [])
        handlers.append(handler)

        def unlisten() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unlisten
