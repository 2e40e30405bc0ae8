"""State data models for the search view-model layer.

Every model in this module is an immutable value. Shared state (cache entries,
the watch state) is replaced wholesale on every update and never patched in
place, so a reader holding a reference can never observe a half-updated object.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Any

DEFAULT_PAGE_SIZE = 10


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp as sent by the backend."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class SortMode(Enum):
    """Ordering requested from the search source."""

    RELEVANCE = "relevance"
    DATE = "date"


@dataclass(frozen=True)
class QuerySignature:
    """Cache key identifying one logical search or listing context.

    The text is stored trimmed and the tags as a frozenset, so two signatures
    compare equal whenever the trimmed text, the sort mode and the tag set
    (regardless of order) match.
    """

    text: str = ""
    tags: frozenset[str] = frozenset()
    sort: SortMode = SortMode.RELEVANCE

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", self.text.strip())
        object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def is_unfiltered(self) -> bool:
        """True when neither text nor tags are active (plain listing)."""
        return not self.text and not self.tags


@dataclass(frozen=True)
class ResultItem:
    """One document in a result list.

    ``highlight`` is ``None`` for plain listings. Search results always carry a
    string there (possibly empty), and that presence is what classifies an item
    as a search result.
    """

    path: str
    display_title: str | None
    tags: frozenset[str]
    created_at: datetime
    modified_at: datetime
    highlight: str | None = None

    @property
    def title(self) -> str:
        """Explicit title, else the file name without extension, else "Untitled"."""
        if self.display_title is not None:
            return self.display_title
        name = PurePath(self.path).name
        if "." in name:
            stem = name.rsplit(".", 1)[0]
            if stem:
                return stem
        return "Untitled"

    @property
    def is_search_result(self) -> bool:
        return self.highlight is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "title": self.display_title,
            "tags": sorted(self.tags),
            "createdAt": self.created_at.isoformat(),
            "modifiedAt": self.modified_at.isoformat(),
        }
        if self.highlight is not None:
            data["highlight"] = self.highlight
        return data

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ResultItem:
        highlight: str | None = None
        if "highlight" in payload:
            highlight = payload["highlight"] or ""
        return cls(
            path=str(payload["path"]),
            display_title=payload.get("title"),
            tags=frozenset(payload.get("tags", ())),
            created_at=_parse_timestamp(payload["createdAt"]),
            modified_at=_parse_timestamp(payload["modifiedAt"]),
            highlight=highlight,
        )


@dataclass(frozen=True)
class ResultPage:
    """A slice of results starting at ``offset``, plus the backend's total count."""

    offset: int
    items: tuple[ResultItem, ...]
    total_count: int

    @property
    def end(self) -> int:
        """Offset just past the last item of this page."""
        return self.offset + len(self.items)

    @classmethod
    def from_dict(cls, payload: dict[str, Any], offset: int) -> ResultPage:
        """Build a page from a ``{"count", "documents"}`` payload."""
        return cls(
            offset=offset,
            items=tuple(ResultItem.from_dict(doc) for doc in payload.get("documents", ())),
            total_count=int(payload.get("count", 0)),
        )


@dataclass(frozen=True)
class CacheEntry:
    """Pages fetched so far for one signature.

    ``pages`` always starts at offset 0 and is contiguous with no overlaps.
    Pages that arrive ahead of a gap wait in ``buffered`` until the gap is
    filled, so the visible prefix never has holes.
    """

    signature: QuerySignature
    page_size: int = DEFAULT_PAGE_SIZE
    pages: tuple[ResultPage, ...] = ()
    buffered: tuple[ResultPage, ...] = ()
    total_count: int = 0
    exhausted: bool = False

    @property
    def next_offset(self) -> int:
        return self.pages[-1].end if self.pages else 0

    @property
    def loaded_count(self) -> int:
        return sum(len(page.items) for page in self.pages)

    @property
    def items(self) -> tuple[ResultItem, ...]:
        return tuple(item for page in self.pages for item in page.items)

    def page_at(self, offset: int) -> ResultPage | None:
        """Return the page starting at ``offset``, exposed or buffered."""
        for page in (*self.pages, *self.buffered):
            if page.offset == offset:
                return page
        return None

    def has_page(self, offset: int) -> bool:
        return self.page_at(offset) is not None

    def with_page(self, page: ResultPage) -> CacheEntry:
        """Return a new entry with ``page`` merged in.

        Duplicate offsets and pages overlapping the exposed prefix are ignored.
        ``total_count`` is taken from the page just received.
        """
        if self.has_page(page.offset) or page.offset < self.next_offset:
            return self

        pages = list(self.pages)
        remaining: list[ResultPage] = []
        next_offset = self.next_offset
        for candidate in sorted((*self.buffered, page), key=lambda p: p.offset):
            if candidate.offset == next_offset:
                pages.append(candidate)
                next_offset = candidate.end
            elif candidate.offset > next_offset:
                remaining.append(candidate)

        total_count = page.total_count
        exhausted = bool(pages) and (
            next_offset >= total_count or len(pages[-1].items) < self.page_size
        )
        return CacheEntry(
            signature=self.signature,
            page_size=self.page_size,
            pages=tuple(pages),
            buffered=tuple(remaining),
            total_count=total_count,
            exhausted=exhausted,
        )


class Movement(Enum):
    """Direction of the last selection movement."""

    UP = "up"
    DOWN = "down"
    NONE = "none"


@dataclass(frozen=True)
class SelectionState:
    """Selected row index; -1 means nothing selected and the input has focus."""

    index: int = -1
    last_movement: Movement = Movement.NONE

    @property
    def is_selected(self) -> bool:
        return self.index >= 0


class WatchStatus(Enum):
    ACTIVE = "active"
    ADDING = "adding"
    DELETING = "deleting"


@dataclass(frozen=True)
class Watch:
    """A filesystem location registered for indexing."""

    id: int
    path: str
    status: WatchStatus
    created_at: datetime
    document_count: int = 0

    @property
    def can_delete(self) -> bool:
        return self.status in (WatchStatus.ACTIVE, WatchStatus.ADDING)

    @property
    def is_disabled(self) -> bool:
        return self.status != WatchStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "documentCount": self.document_count,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Watch:
        return cls(
            id=int(payload["id"]),
            path=str(payload["path"]),
            status=WatchStatus(payload["status"]),
            created_at=_parse_timestamp(payload["createdAt"]),
            document_count=int(payload.get("documentCount", 0)),
        )


class JobType(Enum):
    SCAN = "scan_watch_path"
    DELETE = "delete_watch"
    SYNC = "sync_watch"


class JobStatus(Enum):
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class JobProgress:
    done: int
    total: int

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.done / self.total)


@dataclass(frozen=True)
class JobReport:
    """Progress of one backend job running against a watch."""

    watch_id: int
    progress: JobProgress
    job_type: JobType
    status: JobStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "watchId": self.watch_id,
            "progress": {"done": self.progress.done, "total": self.progress.total},
            "jobType": self.job_type.value,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> JobReport:
        if "watch" in payload:
            watch_id = int(payload["watch"]["id"])
        else:
            watch_id = int(payload["watchId"])
        progress = payload.get("progress", {})
        return cls(
            watch_id=watch_id,
            progress=JobProgress(done=int(progress.get("done", 0)), total=int(progress.get("total", 0))),
            job_type=JobType(payload["jobType"]),
            status=JobStatus(payload["status"]),
        )


@dataclass(frozen=True)
class WatchState:
    """Watches and their job reports, always replaced as a single value."""

    watches: tuple[Watch, ...] = ()
    job_reports: tuple[JobReport, ...] = ()

    def job_report_for(self, watch_id: int) -> JobReport | None:
        """Return the first job report referring to ``watch_id``."""
        for report in self.job_reports:
            if report.watch_id == watch_id:
                return report
        return None

    @property
    def has_finished_jobs(self) -> bool:
        return any(report.status == JobStatus.FINISHED for report in self.job_reports)

    @property
    def finished_jobs(self) -> frozenset[tuple[int, JobType]]:
        """(watch id, job type) pairs of every finished job report."""
        return frozenset(
            (report.watch_id, report.job_type)
            for report in self.job_reports
            if report.status == JobStatus.FINISHED
        )

    def documents_changed_since(self, previous: WatchState) -> bool:
        """True when the step from ``previous`` to this state changed indexed documents.

        That is the case when a watch went from adding to active, when a watch
        disappeared, or when a job report that was running is no longer running.
        Progress updates of running jobs do not count.
        """
        current_watches = {watch.id: watch for watch in self.watches}
        for watch in previous.watches:
            current = current_watches.get(watch.id)
            if current is None:
                return True
            if watch.status == WatchStatus.ADDING and current.status == WatchStatus.ACTIVE:
                return True

        for report in previous.job_reports:
            if report.status != JobStatus.RUNNING:
                continue
            current_report = self.job_report_for(report.watch_id)
            if current_report is None or current_report.status != JobStatus.RUNNING:
                return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "watches": [watch.to_dict() for watch in self.watches],
            "jobReports": [report.to_dict() for report in self.job_reports],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> WatchState:
        return cls(
            watches=tuple(Watch.from_dict(w) for w in payload.get("watches", ())),
            job_reports=tuple(JobReport.from_dict(r) for r in payload.get("jobReports", ())),
        )


@dataclass(frozen=True)
class PathRecommendation:
    """Suggested watch location offered on first run."""

    path: str
    kind: str

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PathRecommendation:
        return cls(path=str(payload["path"]), kind=str(payload.get("type", "documents")))


class ViewStatus(Enum):
    """What the result list should show."""

    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"
