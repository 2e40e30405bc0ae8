"""Tests for the in-memory reference backend."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from docsearch.memory_backend import Document, InMemoryBackend, highlight_snippet, is_parent
from docsearch.tui.exceptions import AddWatchError, AddWatchErrorKind, CommandError
from docsearch.tui.models import JobStatus, JobType, SortMode, WatchState, WatchStatus

BASE = datetime(2024, 1, 1, tzinfo=UTC)


def doc(name: str, body: str, minutes: int, tags: tuple[str, ...] = (), title: str | None = None) -> Document:
    stamp = BASE + timedelta(minutes=minutes)
    return Document(
        path=f"/docs/{name}.md",
        body=body,
        title=title,
        tags=frozenset(tags),
        created_at=stamp,
        modified_at=stamp,
    )


@pytest.fixture
def backend() -> InMemoryBackend:
    backend = InMemoryBackend()
    backend.add_document(doc("old", "quarterly report draft", 1, ("work",)))
    backend.add_document(doc("new", "shopping list", 3, ("home",)))
    backend.add_document(doc("mid", "report report report", 2, ("work", "final"), title="Final"))
    return backend


@pytest.fixture
def watched_tree(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    (root / "sub").mkdir(parents=True)
    (root / "plan.md").write_text("---\ntitle: Plan\ntags: [work, q3]\n---\nThe quarterly plan.\n")
    (root / "sub" / "todo.txt").write_text("buy milk\n")
    (root / "image.png").write_bytes(b"\x89PNG")
    return root


class TestHelpers:
    """Tests for module helpers."""

    def test_is_parent_is_component_wise(self) -> None:
        assert is_parent(Path("/a"), Path("/a/b/c"))
        assert not is_parent(Path("/a"), Path("/ab"))
        assert not is_parent(Path("/a/b"), Path("/a"))
        assert not is_parent(Path("/a"), Path("/a"))

    def test_highlight_wraps_terms(self) -> None:
        assert highlight_snippet("A Report & more", ["report"]) == "A <b>Report</b> &amp; more"

    def test_highlight_without_match_is_empty(self) -> None:
        assert highlight_snippet("nothing here", ["report"]) == ""

    def test_highlight_is_windowed(self) -> None:
        body = "x" * 100 + " report " + "y" * 100
        snippet = highlight_snippet(body, ["report"])
        assert snippet.startswith("…")
        assert snippet.endswith("…")
        assert "<b>report</b>" in snippet


class TestListing:
    """Tests for list_all and search."""

    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, backend: InMemoryBackend) -> None:
        page = await backend.list_all(0, 10)
        assert [item.path for item in page.items] == ["/docs/new.md", "/docs/mid.md", "/docs/old.md"]
        assert page.total_count == 3
        assert all(item.highlight is None for item in page.items)

    @pytest.mark.asyncio
    async def test_list_all_pages(self, backend: InMemoryBackend) -> None:
        page = await backend.list_all(2, 2)
        assert page.offset == 2
        assert [item.path for item in page.items] == ["/docs/old.md"]

    @pytest.mark.asyncio
    async def test_search_relevance(self, backend: InMemoryBackend) -> None:
        page = await backend.search("REPORT", [], SortMode.RELEVANCE, 0, 10)
        assert [item.path for item in page.items] == ["/docs/mid.md", "/docs/old.md"]
        assert all(item.is_search_result for item in page.items)
        assert "<b>" in (page.items[0].highlight or "")

    @pytest.mark.asyncio
    async def test_search_by_date(self, backend: InMemoryBackend) -> None:
        page = await backend.search("report", [], SortMode.DATE, 0, 10)
        assert [item.path for item in page.items] == ["/docs/mid.md", "/docs/old.md"]

    @pytest.mark.asyncio
    async def test_all_tags_required(self, backend: InMemoryBackend) -> None:
        page = await backend.search("", ["work", "final"], SortMode.RELEVANCE, 0, 10)
        assert [item.path for item in page.items] == ["/docs/mid.md"]
        assert page.items[0].highlight == ""

    @pytest.mark.asyncio
    async def test_all_terms_required(self, backend: InMemoryBackend) -> None:
        page = await backend.search("report shopping", [], SortMode.RELEVANCE, 0, 10)
        assert page.total_count == 0

    @pytest.mark.asyncio
    async def test_containing_folder(self, backend: InMemoryBackend) -> None:
        assert await backend.get_containing_folder("/docs/new.md") == "/docs"


class TestWatches:
    """Tests for watch validation and jobs."""

    @pytest.mark.asyncio
    async def test_scan_indexes_matching_files(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        watch = await backend.add_watch(str(watched_tree))
        assert watch.status == WatchStatus.ADDING

        await backend.wait_for_jobs()

        state = await backend.get_watch_state()
        assert state.watches[0].status == WatchStatus.ACTIVE
        assert state.watches[0].document_count == 2
        assert state.job_reports == ()

        page = await backend.search("quarterly", ["q3"], SortMode.RELEVANCE, 0, 10)
        assert [item.display_title for item in page.items] == ["Plan"]

    @pytest.mark.asyncio
    async def test_duplicate_watch_rejected(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        await backend.add_watch(str(watched_tree))
        with pytest.raises(AddWatchError) as excinfo:
            await backend.add_watch(str(watched_tree))
        assert excinfo.value.kind == AddWatchErrorKind.WATCH_ALREADY_EXISTS
        await backend.wait_for_jobs()

    @pytest.mark.asyncio
    async def test_parent_of_existing_rejected(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        await backend.add_watch(str(watched_tree / "sub"))
        with pytest.raises(AddWatchError) as excinfo:
            await backend.add_watch(str(watched_tree))
        assert excinfo.value.kind == AddWatchErrorKind.PARENT_CHILD_RELATIONSHIP
        await backend.wait_for_jobs()

    @pytest.mark.asyncio
    async def test_missing_folder_is_command_error(self, tmp_path: Path) -> None:
        backend = InMemoryBackend()
        with pytest.raises(CommandError):
            await backend.add_watch(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_jobs_push_progress(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        states: list[WatchState] = []
        unlisten = await backend.listen("watches", states.append)

        await backend.add_watch(str(watched_tree))
        await backend.wait_for_jobs()
        unlisten()
        unlisten()

        reports = [report for state in states for report in state.job_reports]
        assert JobStatus.RUNNING in [report.status for report in reports]
        assert reports[-1].status == JobStatus.FINISHED
        assert reports[-1].job_type == JobType.SCAN
        assert states[-1].job_reports == ()
        assert states[-1].watches[0].status == WatchStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_delete_removes_documents(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        await backend.add_watch(str(watched_tree))
        await backend.wait_for_jobs()
        assert backend.document_count == 2

        await backend.delete_watch(str(watched_tree))
        await backend.wait_for_jobs()

        assert backend.document_count == 0
        assert await backend.list_watches() == []

    @pytest.mark.asyncio
    async def test_delete_leaves_no_job_report(self, watched_tree: Path) -> None:
        backend = InMemoryBackend()
        states: list[WatchState] = []
        await backend.listen("watches", states.append)
        await backend.add_watch(str(watched_tree))
        await backend.wait_for_jobs()

        await backend.delete_watch(str(watched_tree))
        await backend.wait_for_jobs()

        state = await backend.get_watch_state()
        assert state.watches == ()
        assert state.job_reports == ()
        # No published state carries a report for a watch it does not list.
        for published in states:
            watch_ids = {watch.id for watch in published.watches}
            assert all(report.watch_id in watch_ids for report in published.job_reports)

    @pytest.mark.asyncio
    async def test_delete_unknown_path_ignored(self, backend: InMemoryBackend, tmp_path: Path) -> None:
        await backend.delete_watch(str(tmp_path))
        assert backend.document_count == 3

    @pytest.mark.asyncio
    async def test_recommendations_only_existing_folders(self, tmp_path: Path) -> None:
        (tmp_path / "Documents").mkdir()
        backend = InMemoryBackend(
            recommendations=[(str(tmp_path / "Documents"), "documents"), (str(tmp_path / "Nope"), "notes")]
        )
        recommendations = await backend.get_path_recommendations()
        assert [rec.kind for rec in recommendations] == ["documents"]
