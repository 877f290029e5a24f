"""Integration tests for the git change source against real repositories."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ctxsync.exceptions import NotAVersionControlledTree
from ctxsync.infra.command import CommandRunner
from ctxsync.vcs.git_source import GitChangeSource
from ctxsync.vcs.reference import ReferenceStore

from conftest import SAMPLE_FILES, commit_all, git, write_files


def _source(repo: Path) -> GitChangeSource:
    return GitChangeSource(
        repo, CommandRunner(heartbeat_interval=0), ReferenceStore(repo / "context-log.json")
    )


class TestRepository:
    """Repository detection and metadata."""

    def test_not_a_repository(self, tmp_project: Path) -> None:
        """A plain directory is rejected."""
        source = _source(tmp_project)

        assert not source.is_repository()
        with pytest.raises(NotAVersionControlledTree):
            source.changes_since(None)

    def test_metadata(self, tmp_git_repo: Path) -> None:
        """Revision, branch, tracked files and history come from git."""
        source = _source(tmp_git_repo)

        assert source.current_revision() == git(tmp_git_repo, "rev-parse", "HEAD")
        assert source.branch_name() == "main"
        assert source.tracked_files() == set(SAMPLE_FILES)
        history = source.file_history("src/services/y.ts")
        assert [h.subject for h in history] == ["Initial commit"]
        assert history[0].date


class TestChangesSince:
    """Change computation."""

    def test_single_revision_reports_everything_added(self, tmp_git_repo: Path) -> None:
        """Without a previous commit all tracked files count as added."""
        changes = _source(tmp_git_repo).changes_since(None)

        assert changes.added == sorted(SAMPLE_FILES)
        assert changes.modified == []
        assert changes.deleted == []

    def test_previous_commit_fallback(self, tmp_git_repo: Path) -> None:
        """Without a pointer the last commit is diffed against its parent."""
        write_files(tmp_git_repo, {"src/generators/x.ts": "export const x = 30;\n"})
        commit_all(tmp_git_repo, "Change x")

        changes = _source(tmp_git_repo).pending_changes()

        assert changes.modified == ["src/generators/x.ts"]
        assert changes.added == []

    def test_since_reference(self, tmp_git_repo: Path) -> None:
        """All commits after the pointer are included."""
        source = _source(tmp_git_repo)
        base = source.current_revision()
        source.persist_reference(base)

        write_files(tmp_git_repo, {"src/generators/x.ts": "export const x = 30;\n"})
        commit_all(tmp_git_repo, "Change x")
        (tmp_git_repo / "src/services/y.ts").unlink()
        write_files(tmp_git_repo, {"src/utils/new.ts": "export {};\n"})
        commit_all(tmp_git_repo, "Delete y, add utils")

        changes = source.pending_changes()

        assert changes.modified == ["src/generators/x.ts"]
        assert changes.deleted == ["src/services/y.ts"]
        assert changes.added == ["src/utils/new.ts"]

    def test_stale_reference_falls_back(self, tmp_git_repo: Path) -> None:
        """A pointer to a vanished commit is treated as absent."""
        source = _source(tmp_git_repo)
        source.persist_reference("0" * 40)

        changes = source.pending_changes()

        assert changes.added == sorted(SAMPLE_FILES)

    def test_rename_detection(self, tmp_git_repo: Path) -> None:
        """Renames are reported with both paths."""
        source = _source(tmp_git_repo)
        base = source.current_revision()
        git(tmp_git_repo, "mv", "src/services/z.ts", "src/services/zeta.ts")
        commit_all(tmp_git_repo, "Rename z")

        changes = source.changes_since(base)

        assert [(r.from_path, r.to_path) for r in changes.renamed] == [
            ("src/services/z.ts", "src/services/zeta.ts")
        ]

    def test_staged_and_uncommitted(self, tmp_git_repo: Path) -> None:
        """The index and the work tree can be inspected separately."""
        source = _source(tmp_git_repo)
        write_files(tmp_git_repo, {"src/generators/a.ts": "export const a = 10;\n"})
        git(tmp_git_repo, "add", "src/generators/a.ts")
        write_files(tmp_git_repo, {"src/generators/b.ts": "export const b = 20;\n"})

        assert source.staged_changes().modified == ["src/generators/a.ts"]
        assert source.uncommitted_changes().modified == [
            "src/generators/a.ts",
            "src/generators/b.ts",
        ]


class TestReference:
    """Pointer persistence through the source."""

    def test_persist_load_clear(self, tmp_git_repo: Path) -> None:
        """The pointer round-trips and can be cleared."""
        source = _source(tmp_git_repo)
        head = source.current_revision()

        assert source.load_reference() is None
        assert source.persist_reference(head)
        assert source.load_reference() == head
        assert source.tracking_info().up_to_date

        assert source.clear_reference()
        assert source.load_reference() is None
        assert not source.tracking_info().up_to_date


class TestHistory:
    """Commit history lookups."""

    def test_latest_commit_across_paths(self, tmp_git_repo: Path) -> None:
        """With several paths the newest commit touching any of them wins."""
        write_files(tmp_git_repo, {"src/generators/b.ts": "export const b = 20;\n"})
        commit_all(tmp_git_repo, "Change b")
        source = _source(tmp_git_repo)

        only_a = source.file_history("src/generators/a.ts", limit=1)
        both = source.file_history("src/generators/a.ts", "src/generators/b.ts", limit=1)

        assert [h.subject for h in only_a] == ["Initial commit"]
        assert [h.subject for h in both] == ["Change b"]
        assert both[0].revision == git(tmp_git_repo, "rev-parse", "HEAD")

    def test_no_paths(self, tmp_git_repo: Path) -> None:
        """Asking about nothing returns nothing."""
        assert _source(tmp_git_repo).file_history() == []


class TestUndecodableNames:
    """Paths that are not valid UTF-8."""

    @pytest.fixture
    def bad_name(self, tmp_git_repo: Path) -> str:
        """Commit a file whose name contains a raw 0xff byte."""
        name = os.fsdecode(b"src/services/bad\xff.ts")
        try:
            (tmp_git_repo / name).write_text("export const bad = 1;\n")
        except (OSError, UnicodeEncodeError):
            pytest.skip("filesystem rejects non-UTF-8 names")
        commit_all(tmp_git_repo, "Add bad name")
        return name

    def test_tracked_and_diffed(self, tmp_git_repo: Path, bad_name: str) -> None:
        """The name is listed and diffed as the same string the filesystem uses."""
        source = _source(tmp_git_repo)

        assert bad_name in source.tracked_files()
        assert source.pending_changes().added == [bad_name]
        assert (tmp_git_repo / bad_name).exists()
