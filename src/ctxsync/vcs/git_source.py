"""Git-backed change source."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from ctxsync.exceptions import ChangeSourceError, NotAVersionControlledTree
from ctxsync.infra.command import CommandRunner
from ctxsync.vcs.changes import ChangeSet, parse_name_status
from ctxsync.vcs.reference import ReferenceStore

logger = structlog.get_logger()

PREVIOUS_REVISION = "HEAD~1"


@dataclass
class HistoryEntry:
    """One commit touching a file.

    Attributes:
        revision: Full commit SHA.
        date: Committer date in ISO 8601.
        subject: First line of the commit message.
    """

    revision: str
    date: str
    subject: str


@dataclass
class TrackingInfo:
    """Where the reference pointer stands relative to HEAD.

    Attributes:
        last_processed: Revision in the reference record, if any.
        current: Current HEAD revision.
        branch: Current branch name.
    """

    last_processed: str | None
    current: str
    branch: str

    @property
    def up_to_date(self) -> bool:
        """True if the last processed revision is HEAD."""
        return self.last_processed == self.current


class GitChangeSource:
    """Produces change sets from git history and tracks the processed point.

    Example:
        >>> source = GitChangeSource(Path("/repo"), CommandRunner(), store)
        >>> changes = source.changes_since(source.load_reference())
        >>> changes.modified
        ['src/app.py']
    """

    def __init__(
        self,
        repo_root: Path,
        cmd: CommandRunner,
        reference: ReferenceStore,
    ) -> None:
        """Initialize the change source.

        Args:
            repo_root: Root of the git work tree.
            cmd: CommandRunner instance.
            reference: Store for the last processed revision.
        """
        self.repo_root = repo_root
        self.cmd = cmd
        self.reference = reference

    def _git(self, args: list[str]) -> tuple[int, str, str]:
        return self.cmd.run_git(args, cwd=self.repo_root, check=False)

    def is_repository(self) -> bool:
        """Check whether repo_root is inside a git work tree."""
        if not self.repo_root.is_dir():
            return False
        returncode, stdout, _ = self._git(["rev-parse", "--is-inside-work-tree"])
        return returncode == 0 and stdout.strip() == "true"

    def ensure_repository(self) -> None:
        """Raise if repo_root is not under version control.

        Raises:
            NotAVersionControlledTree: If git does not recognise the directory.
        """
        if not self.is_repository():
            msg = f"Not a git repository: {self.repo_root}"
            logger.error("Not a git repository", path=str(self.repo_root))
            raise NotAVersionControlledTree(msg, path=self.repo_root)

    def current_revision(self) -> str:
        """Return the SHA of HEAD.

        Raises:
            NotAVersionControlledTree: If repo_root is not a git work tree.
            ChangeSourceError: If HEAD cannot be resolved (e.g. no commits).
        """
        self.ensure_repository()
        returncode, stdout, stderr = self._git(["rev-parse", "HEAD"])
        if returncode != 0:
            msg = f"Failed to resolve HEAD: {stderr.strip()}"
            raise ChangeSourceError(msg, operation="current_revision", path=self.repo_root)
        return stdout.strip()

    def revision_exists(self, revision: str) -> bool:
        """Check whether a revision still resolves to a commit."""
        returncode, _, _ = self._git(
            ["rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"]
        )
        return returncode == 0

    def tracked_files(self) -> set[str]:
        """Return every path git currently tracks.

        Raises:
            ChangeSourceError: If git ls-files fails.
        """
        returncode, stdout, stderr = self._git(["ls-files", "-z"])
        if returncode != 0:
            msg = f"Failed to list tracked files: {stderr.strip()}"
            raise ChangeSourceError(msg, operation="tracked_files", path=self.repo_root)
        return {p for p in stdout.split("\0") if p}

    def _diff(self, args: list[str], operation: str) -> ChangeSet:
        returncode, stdout, stderr = self._git(
            ["diff", "--name-status", "-z", "-M", *args]
        )
        if returncode != 0:
            msg = f"git diff failed: {stderr.strip()}"
            raise ChangeSourceError(msg, operation=operation, path=self.repo_root)
        return parse_name_status(stdout)

    def _all_tracked_as_added(self) -> ChangeSet:
        return ChangeSet(added=sorted(self.tracked_files()))

    def changes_since(self, ref: str | None) -> ChangeSet:
        """Compute the changes between a reference revision and HEAD.

        Without a reference, the previous commit is used; a single-commit
        history reports every tracked file as added. A reference that no
        longer resolves (rewritten or pruned history) is discarded with a
        warning and treated as absent.

        Args:
            ref: The last processed revision, or None.

        Returns:
            The typed change set.

        Raises:
            NotAVersionControlledTree: If repo_root is not a git work tree.
            ChangeSourceError: If git cannot produce the diff.
        """
        self.ensure_repository()
        log = logger.bind(ref=ref[:8] if ref else None)

        if ref is not None and not self.revision_exists(ref):
            log.warning("Reference revision no longer exists, falling back")
            ref = None

        if ref is None:
            if not self.revision_exists(PREVIOUS_REVISION):
                log.info("Single-revision history, treating all tracked files as added")
                return self._all_tracked_as_added()
            ref = PREVIOUS_REVISION

        changes = self._diff([ref, "HEAD"], operation="changes_since")
        log.info(
            "Computed changes",
            base=ref[:8],
            added=len(changes.added),
            modified=len(changes.modified),
            deleted=len(changes.deleted),
            renamed=len(changes.renamed),
        )
        return changes

    def pending_changes(self) -> ChangeSet:
        """Changes since the persisted reference pointer."""
        return self.changes_since(self.load_reference())

    def staged_changes(self) -> ChangeSet:
        """Changes staged in the index relative to HEAD."""
        self.ensure_repository()
        return self._diff(["--cached"], operation="staged_changes")

    def uncommitted_changes(self) -> ChangeSet:
        """Staged and unstaged changes relative to HEAD."""
        self.ensure_repository()
        return self._diff(["HEAD"], operation="uncommitted_changes")

    def branch_name(self) -> str:
        """Current branch name, or ``unknown``."""
        returncode, stdout, _ = self._git(["branch", "--show-current"])
        name = stdout.strip()
        return name if returncode == 0 and name else "unknown"

    def file_history(self, *paths: str, limit: int = 10) -> list[HistoryEntry]:
        """Most recent commits touching any of ``paths`` (empty on failure)."""
        if not paths:
            return []
        returncode, stdout, _ = self._git(
            ["log", "--format=%H|%cI|%s", "-n", str(limit), "--", *paths]
        )
        if returncode != 0:
            return []

        entries = []
        for line in stdout.splitlines():
            parts = line.split("|", 2)
            if len(parts) == 3:
                entries.append(HistoryEntry(revision=parts[0], date=parts[1], subject=parts[2]))
        return entries

    def load_reference(self) -> str | None:
        """Return the persisted reference revision, if any."""
        return self.reference.load()

    def persist_reference(self, revision: str) -> bool:
        """Record a revision as fully processed (best effort)."""
        saved = self.reference.save(revision)
        if saved:
            logger.info("Reference pointer advanced", revision=revision[:8])
        return saved

    def clear_reference(self) -> bool:
        """Forget the processed point so the next run starts over."""
        return self.reference.clear()

    def tracking_info(self) -> TrackingInfo:
        """Summarize the reference pointer relative to HEAD."""
        return TrackingInfo(
            last_processed=self.load_reference(),
            current=self.current_revision(),
            branch=self.branch_name(),
        )
