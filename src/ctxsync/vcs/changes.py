"""Typed change sets and the filter applied before module resolution."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Rename:
    """A file moved from one path to another."""

    from_path: str
    to_path: str

    def to_dict(self) -> dict[str, str]:
        """Convert to the ``{from, to}`` wire shape."""
        return {"from": self.from_path, "to": self.to_path}


@dataclass
class ChangeSet:
    """Repository-relative POSIX paths grouped by change kind.

    Attributes:
        added: Paths that did not exist at the reference point.
        modified: Paths whose content changed.
        deleted: Paths that no longer exist.
        renamed: Paths that moved.
    """

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    renamed: list[Rename] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of change entries (a rename counts once)."""
        return len(self.added) + len(self.modified) + len(self.deleted) + len(self.renamed)

    @property
    def is_empty(self) -> bool:
        """True if nothing changed."""
        return self.total == 0

    @property
    def has_structural_changes(self) -> bool:
        """True if any file was added or deleted."""
        return bool(self.added or self.deleted)

    def all_paths(self) -> list[str]:
        """Every affected path, with both sides of each rename."""
        paths = [*self.added, *self.modified, *self.deleted]
        for rename in self.renamed:
            paths.append(rename.from_path)
            paths.append(rename.to_path)
        return paths

    def iter_categorized(self) -> Iterator[tuple[str, str]]:
        """Yield ``(category, path)`` pairs, renames yielding both sides."""
        for path in self.added:
            yield "added", path
        for path in self.modified:
            yield "modified", path
        for path in self.deleted:
            yield "deleted", path
        for rename in self.renamed:
            yield "renamed", rename.from_path
            yield "renamed", rename.to_path

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "added": list(self.added),
            "modified": list(self.modified),
            "deleted": list(self.deleted),
            "renamed": [r.to_dict() for r in self.renamed],
        }


def parse_name_status(output: str) -> ChangeSet:
    """Parse ``git diff --name-status -z`` output.

    Records are NUL separated: a status token followed by one path, or two
    paths for renames and copies. Copies are reported as additions of the
    destination and type changes as modifications.

    Args:
        output: Raw stdout of the git command.

    Returns:
        The parsed ChangeSet.
    """
    changes = ChangeSet()
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        status = tokens[i].strip()
        i += 1
        if not status:
            continue
        kind = status[0]

        if kind in ("R", "C"):
            if i + 1 >= len(tokens):
                logger.warning("Truncated rename record in git output", status=status)
                break
            from_path, to_path = tokens[i], tokens[i + 1]
            i += 2
            if kind == "R":
                changes.renamed.append(Rename(from_path=from_path, to_path=to_path))
            else:
                changes.added.append(to_path)
            continue

        if i >= len(tokens):
            break
        path = tokens[i]
        i += 1

        if kind == "A":
            changes.added.append(path)
        elif kind in ("M", "T"):
            changes.modified.append(path)
        elif kind == "D":
            changes.deleted.append(path)
        else:
            logger.debug("Ignoring unsupported git status", status=status, path=path)

    return changes


@dataclass
class FilterOutcome:
    """Result of filtering a raw change set.

    Attributes:
        kept: The change set restricted to relevant paths.
        dropped: Paths that were filtered out.
    """

    kept: ChangeSet
    dropped: list[str] = field(default_factory=list)


class ChangeFilter:
    """Restricts a change set to tracked, text-classified source files.

    Paths that exist at the current revision must be tracked. Deletions and
    rename sources come from history and are kept if they pass the other
    checks.

    Example:
        >>> flt = ChangeFilter(tracked={"src/a.py"}, is_relevant=lambda p: True)
        >>> flt.apply(ChangeSet(added=["src/a.py", "notes.tmp"])).kept.added
        ['src/a.py']
    """

    def __init__(
        self,
        *,
        tracked: set[str] | None,
        is_relevant: Callable[[str], bool],
    ) -> None:
        """Initialize the filter.

        Args:
            tracked: Currently tracked paths, or None to skip the tracked check.
            is_relevant: Predicate for text classification and exclusions.
        """
        self.tracked = tracked
        self.is_relevant = is_relevant

    def _keep_current(self, path: str) -> bool:
        if self.tracked is not None and path not in self.tracked:
            return False
        return self.is_relevant(path)

    def apply(self, changes: ChangeSet) -> FilterOutcome:
        """Filter a change set.

        A rename is kept when either side survives; the surviving change
        keeps its rename shape so both modules stay attributed.
        """
        kept = ChangeSet()
        dropped: list[str] = []

        for path in changes.added:
            (kept.added if self._keep_current(path) else dropped).append(path)
        for path in changes.modified:
            (kept.modified if self._keep_current(path) else dropped).append(path)
        for path in changes.deleted:
            (kept.deleted if self.is_relevant(path) else dropped).append(path)
        for rename in changes.renamed:
            keep_from = self.is_relevant(rename.from_path)
            keep_to = self._keep_current(rename.to_path)
            if keep_from and keep_to:
                kept.renamed.append(rename)
            elif keep_from:
                kept.deleted.append(rename.from_path)
                dropped.append(rename.to_path)
            elif keep_to:
                kept.added.append(rename.to_path)
                dropped.append(rename.from_path)
            else:
                dropped.extend([rename.from_path, rename.to_path])

        if dropped:
            logger.debug("Filtered out irrelevant changes", dropped=len(dropped))
        return FilterOutcome(kept=kept, dropped=dropped)
