"""Wires the change source, analyzer and regenerator for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from ctxsync.analysis.analyzer import ChangeAnalysis, ChangeAnalyzer
from ctxsync.config import CtxSyncConfig
from ctxsync.corpus.classifier import CorpusState, StateClassifier, StateReport
from ctxsync.exceptions import CorpusNotInitialized
from ctxsync.executors import Executor, create_executor
from ctxsync.generation.generator import ArtifactGenerator, ExecutorArtifactGenerator
from ctxsync.infra.command import CommandRunner
from ctxsync.inventory import FileInventory, is_text_file, matches_pattern, scan_inventory
from ctxsync.paths import ContextPaths
from ctxsync.regeneration.orchestrator import IncrementalRegenerator, RegenerationResult
from ctxsync.vcs.changes import ChangeFilter, ChangeSet
from ctxsync.vcs.git_source import GitChangeSource, TrackingInfo
from ctxsync.vcs.reference import ReferenceStore

logger = structlog.get_logger()


@dataclass
class ChangeRequest:
    """Which changes a preview or update should consider.

    Attributes:
        since: Explicit base revision, overriding the reference pointer.
        staged: Use the index instead of history.
        force: Treat every tracked file as added.
    """

    since: str | None = None
    staged: bool = False
    force: bool = False

    @property
    def label(self) -> str:
        """Human description of the change window."""
        if self.force:
            return "all tracked files"
        if self.staged:
            return "staged changes"
        if self.since:
            return f"changes since {self.since}"
        return "changes since last update"


class UpdateService:
    """Entry point for status, preview, update and reset.

    Example:
        >>> service = UpdateService(Path("/repo"), CtxSyncConfig.default())
        >>> service.status().state
        <CorpusState.READY: 'ready'>
        >>> service.update().updated
        2
    """

    def __init__(
        self,
        repo_root: Path,
        config: CtxSyncConfig | None = None,
        *,
        cmd: CommandRunner | None = None,
        executor: Executor | None = None,
        generator: ArtifactGenerator | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repo_root: Root of the target repository.
            config: Configuration; defaults if None.
            cmd: CommandRunner for git and LLM CLIs.
            executor: Executor override (otherwise built from config).
            generator: Generator override (otherwise executor-backed).
        """
        self.repo_root = repo_root
        self.config = config or CtxSyncConfig()
        self.cmd = cmd or CommandRunner()
        self.paths = ContextPaths(
            repo_root=repo_root,
            output_dir=self.config.context.output_dir,
            reference_file=self.config.git.reference_file,
        )
        self.source = GitChangeSource(
            repo_root, self.cmd, ReferenceStore(self.paths.reference_json)
        )
        self.classifier = StateClassifier(self.config.context)
        self._executor = executor
        self._generator = generator

    @property
    def generator(self) -> ArtifactGenerator:
        """Content generator, created on first use."""
        if self._generator is None:
            executor = self._executor or create_executor(self.config.engine, self.cmd)
            self._generator = ExecutorArtifactGenerator(
                executor=executor, paths=self.paths, config=self.config, source=self.source
            )
        return self._generator

    def is_relevant(self, relative_path: str) -> bool:
        """True for text files ctxsync does not own and the config does not exclude."""
        if self.paths.is_internal(relative_path) or not is_text_file(relative_path):
            return False
        return not any(
            matches_pattern(relative_path, p) for p in self.config.inventory.exclude_patterns
        )

    def status(self) -> StateReport:
        """Classify the artifact tree.

        Raises:
            NotAVersionControlledTree: If repo_root is not a git work tree.
            ArtifactRootError: If the artifact tree cannot be read.
        """
        self.source.ensure_repository()
        return self.classifier.classify(self.paths.artifact_root, self.repo_root)

    def tracking_info(self) -> TrackingInfo:
        """Reference pointer relative to HEAD."""
        return self.source.tracking_info()

    def collect_changes(self, request: ChangeRequest, tracked: set[str]) -> ChangeSet:
        """Produce the raw change set for a request."""
        if request.force:
            return ChangeSet(added=sorted(tracked))
        if request.staged:
            return self.source.staged_changes()
        if request.since:
            return self.source.changes_since(request.since)
        return self.source.pending_changes()

    def _prepare(self, request: ChangeRequest) -> tuple[ChangeSet, FileInventory, ChangeAnalyzer]:
        tracked = self.source.tracked_files()
        changes = self.collect_changes(request, tracked)
        inventory = scan_inventory(
            self.paths, tracked, exclude_patterns=self.config.inventory.exclude_patterns
        )
        analyzer = ChangeAnalyzer(
            self.config.analysis,
            ChangeFilter(tracked=tracked, is_relevant=self.is_relevant),
        )
        return changes, inventory, analyzer

    def preview(self, request: ChangeRequest | None = None) -> ChangeAnalysis:
        """Analyze pending changes without writing anything."""
        request = request or ChangeRequest()
        self.source.ensure_repository()
        changes, inventory, analyzer = self._prepare(request)
        logger.info("Previewing update", window=request.label)
        return analyzer.analyze(changes, inventory)

    def update(
        self, request: ChangeRequest | None = None, *, dry_run: bool = False
    ) -> tuple[ChangeAnalysis, RegenerationResult]:
        """Classify the corpus, then regenerate what the changes affect.

        Args:
            request: Change window; pending changes by default.
            dry_run: Plan only, no writes and no pointer advance.

        Returns:
            The analysis and the regeneration result.

        Raises:
            CorpusNotInitialized: If no artifacts exist and force is off.
            NotAVersionControlledTree: If repo_root is not a git work tree.
            ArtifactRootError: If the artifact tree cannot be read.
        """
        request = request or ChangeRequest()
        report = self.status()
        if report.state is CorpusState.NEW and not request.force:
            msg = (
                f"No context documentation found in {self.paths.artifact_root}; "
                "run `ctxsync update --force` to generate it"
            )
            raise CorpusNotInitialized(msg, path=self.paths.artifact_root)

        changes, inventory, analyzer = self._prepare(request)
        logger.info("Updating documentation", window=request.label, state=report.state.value)
        analysis = analyzer.analyze(changes, inventory)
        regenerator = IncrementalRegenerator(
            paths=self.paths, generator=self.generator, source=self.source, analyzer=analyzer
        )
        result = regenerator.run(changes, inventory, analysis, dry_run=dry_run)
        return analysis, result

    def reset(self) -> bool:
        """Forget the processed point so the next update starts over."""
        return self.source.clear_reference()
