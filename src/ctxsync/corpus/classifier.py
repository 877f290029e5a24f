"""Classifies how fresh the generated artifact tree is."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ctxsync.config import ContextConfig
from ctxsync.exceptions import ArtifactRootError
from ctxsync.frontmatter import needs_fill
from ctxsync.paths import DOCS_DIRNAME

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400


class CorpusState(str, Enum):
    """Freshness of the artifact tree."""

    NEW = "new"
    UNFILLED = "unfilled"
    OUTDATED = "outdated"
    READY = "ready"

    @property
    def urgency(self) -> int:
        """Higher means the CLI should prompt about it first."""
        return _URGENCY[self]


_URGENCY = {
    CorpusState.NEW: 3,
    CorpusState.UNFILLED: 2,
    CorpusState.OUTDATED: 1,
    CorpusState.READY: 0,
}


@dataclass
class StateReport:
    """Corpus state plus the numbers behind it.

    Attributes:
        state: The classified state.
        artifact_root: Root of the artifact tree.
        total_files: Documents found under the artifact root.
        unfilled_files: Documents marked ``status: unfilled``.
        source_last_modified: Newest source mtime.
        artifacts_last_modified: Newest document mtime.
        days_behind: Whole days the artifacts trail the source (outdated only).
    """

    state: CorpusState
    artifact_root: Path
    total_files: int = 0
    unfilled_files: int = 0
    source_last_modified: datetime | None = None
    artifacts_last_modified: datetime | None = None
    days_behind: int | None = None

    @property
    def has_artifact_tree(self) -> bool:
        """False only for the ``new`` state."""
        return self.state is not CorpusState.NEW

    @property
    def filled_files(self) -> int:
        """Documents without the unfilled marker."""
        return self.total_files - self.unfilled_files

    def describe(self) -> str:
        """One-line human description of the state."""
        if self.state is CorpusState.NEW:
            return "No context documentation found"
        if self.state is CorpusState.UNFILLED:
            return f"{self.unfilled_files} of {self.total_files} files need to be filled"
        if self.state is CorpusState.OUTDATED:
            return f"Documentation is {self.days_behind} day(s) behind code"
        return f"{self.total_files} documentation files up to date"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "state": self.state.value,
            "artifact_root": str(self.artifact_root),
            "total_files": self.total_files,
            "filled_files": self.filled_files,
            "unfilled_files": self.unfilled_files,
            "source_last_modified": (
                self.source_last_modified.isoformat() if self.source_last_modified else None
            ),
            "artifacts_last_modified": (
                self.artifacts_last_modified.isoformat()
                if self.artifacts_last_modified
                else None
            ),
            "days_behind": self.days_behind,
            "description": self.describe(),
        }


class StateClassifier:
    """Decides whether the artifact tree is new, unfilled, outdated or ready.

    Unfilled is checked before staleness: comparing timestamps only means
    something once every document has content.

    Example:
        >>> classifier = StateClassifier(ContextConfig())
        >>> report = classifier.classify(Path("/repo/.context"), Path("/repo"))
        >>> report.state
        <CorpusState.READY: 'ready'>
    """

    def __init__(self, config: ContextConfig | None = None) -> None:
        """Initialize the classifier.

        Args:
            config: Source directories, extensions and tolerance.
        """
        self.config = config or ContextConfig()

    def classify(self, artifact_root: Path, source_root: Path) -> StateReport:
        """Classify the artifact tree against the source tree.

        Args:
            artifact_root: Root of the generated artifacts (e.g. ``.context``).
            source_root: Repository root.

        Returns:
            StateReport describing the corpus.

        Raises:
            ArtifactRootError: If the artifact tree cannot be read.
        """
        log = logger.bind(artifact_root=str(artifact_root))

        if not (artifact_root / DOCS_DIRNAME).is_dir():
            log.debug("No docs directory, corpus is new")
            return StateReport(state=CorpusState.NEW, artifact_root=artifact_root)

        documents = self._documents(artifact_root)
        unfilled = 0
        for doc in documents:
            try:
                if needs_fill(doc):
                    unfilled += 1
            except OSError as e:
                msg = f"Cannot read artifact {doc}: {e}"
                log.error("Artifact unreadable", path=str(doc), error=str(e))
                raise ArtifactRootError(msg, path=doc) from e

        if unfilled:
            log.info("Corpus has unfilled documents", unfilled=unfilled, total=len(documents))
            return StateReport(
                state=CorpusState.UNFILLED,
                artifact_root=artifact_root,
                total_files=len(documents),
                unfilled_files=unfilled,
            )

        source_newest = self._newest_source_mtime(source_root, exclude=artifact_root)
        artifacts_newest = self._newest_mtime(documents)

        report = StateReport(
            state=CorpusState.READY,
            artifact_root=artifact_root,
            total_files=len(documents),
            source_last_modified=_to_datetime(source_newest),
            artifacts_last_modified=_to_datetime(artifacts_newest),
        )

        if source_newest is not None and artifacts_newest is not None:
            delta = source_newest - artifacts_newest
            if delta > self.config.mtime_tolerance_seconds:
                report.state = CorpusState.OUTDATED
                report.days_behind = math.ceil(delta / SECONDS_PER_DAY)

        log.info("Classified corpus", state=report.state.value, days_behind=report.days_behind)
        return report

    def _documents(self, artifact_root: Path) -> list[Path]:
        documents: list[Path] = []

        def _raise(err: OSError) -> None:
            raise err

        try:
            for dirpath, _, filenames in os.walk(artifact_root, onerror=_raise):
                documents.extend(Path(dirpath) / f for f in filenames if f.endswith(".md"))
        except OSError as e:
            msg = f"Cannot read artifact root {artifact_root}: {e}"
            logger.error("Artifact root unreadable", path=str(artifact_root), error=str(e))
            raise ArtifactRootError(msg, path=artifact_root) from e
        return sorted(documents)

    @staticmethod
    def _newest_mtime(files: list[Path]) -> float | None:
        newest: float | None = None
        for path in files:
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest:
                newest = mtime
        return newest

    def _source_roots(self, source_root: Path) -> list[Path]:
        roots = [source_root / d for d in self.config.source_dirs]
        existing = [r for r in roots if r.is_dir()]
        return existing or [source_root]

    def _newest_source_mtime(self, source_root: Path, *, exclude: Path) -> float | None:
        extensions = {e.lower() for e in self.config.source_extensions}
        ignored = set(self.config.ignore_dirs)
        exclude = exclude.resolve()
        files: list[Path] = []

        for root in self._source_roots(source_root):
            for dirpath, dirnames, filenames in os.walk(root):
                current = Path(dirpath)
                dirnames[:] = [
                    d
                    for d in dirnames
                    if d not in ignored and (current / d).resolve() != exclude
                ]
                files.extend(
                    current / f for f in filenames if Path(f).suffix.lower() in extensions
                )

        return self._newest_mtime(files)


def _to_datetime(timestamp: float | None) -> datetime | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=UTC)
