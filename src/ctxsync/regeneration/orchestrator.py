"""Incremental regeneration of the artifact tree."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ctxsync.analysis.analyzer import ChangeAnalysis, ChangeAnalyzer
from ctxsync.exceptions import PartialFailure
from ctxsync.generation.generator import ArtifactGenerator
from ctxsync.inventory import FileInventory
from ctxsync.modules import Module, current_slugs, group_modules
from ctxsync.paths import ContextPaths
from ctxsync.vcs.changes import ChangeSet
from ctxsync.vcs.git_source import GitChangeSource

logger = structlog.get_logger()


class Stage(str, Enum):
    """Stages of one regeneration pass."""

    IDLE = "idle"
    FILTERING = "filtering"
    MODULE_REGENERATION = "module_regeneration"
    ORPHAN_CLEANUP = "orphan_cleanup"
    OVERVIEW_REGENERATION = "overview_regeneration"
    POINTER_ADVANCE = "pointer_advance"


@dataclass
class ModuleOutcome:
    """Result of regenerating one module: an artifact path or an error.

    Attributes:
        module: Module display name.
        artifact: Docs-relative path written, set on success.
        error: Failure reason, set on failure.
    """

    module: str
    artifact: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True if the artifact was written."""
        return self.error is None

    @classmethod
    def success(cls, module: str, artifact: str) -> ModuleOutcome:
        """Tag a written artifact."""
        return cls(module=module, artifact=artifact)

    @classmethod
    def failure(cls, module: str, error: str) -> ModuleOutcome:
        """Tag a failed module."""
        return cls(module=module, error=error)


@dataclass
class ModuleFailure:
    """A module whose artifact could not be regenerated."""

    module: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"module": self.module, "reason": self.reason}


@dataclass
class RegenerationResult:
    """Outcome of a regeneration pass.

    In a dry run the lists hold what would have been written or removed.

    Attributes:
        updated_files: Docs-relative module artifacts written.
        removed_files: Docs-relative module artifacts deleted.
        overview_updated: True if overview and index were rewritten.
        failures: Modules that failed to regenerate.
        overview_error: Why overview regeneration failed, if it did.
        pointer_advanced: True if the reference pointer was persisted.
        revision: Revision the pass processed.
        dry_run: True if nothing was written.
    """

    updated_files: list[str] = field(default_factory=list)
    removed_files: list[str] = field(default_factory=list)
    overview_updated: bool = False
    failures: list[ModuleFailure] = field(default_factory=list)
    overview_error: str | None = None
    pointer_advanced: bool = False
    revision: str | None = None
    dry_run: bool = False

    @property
    def updated(self) -> int:
        """Number of module artifacts written."""
        return len(self.updated_files)

    @property
    def removed(self) -> int:
        """Number of module artifacts deleted."""
        return len(self.removed_files)

    @property
    def has_failures(self) -> bool:
        """True if any module or the overview failed."""
        return bool(self.failures) or self.overview_error is not None

    def raise_for_failures(self) -> None:
        """Raise PartialFailure if anything failed.

        Raises:
            PartialFailure: Carrying this result.
        """
        if not self.has_failures:
            return
        names = ", ".join(f.module for f in self.failures)
        parts = []
        if self.failures:
            parts.append(f"{len(self.failures)} module(s) failed: {names}")
        if self.overview_error:
            parts.append(f"overview failed: {self.overview_error}")
        raise PartialFailure("; ".join(parts), result=self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "updated": self.updated,
            "removed": self.removed,
            "updated_files": list(self.updated_files),
            "removed_files": list(self.removed_files),
            "overview_updated": self.overview_updated,
            "failures": [f.to_dict() for f in self.failures],
            "overview_error": self.overview_error,
            "pointer_advanced": self.pointer_advanced,
            "revision": self.revision,
            "dry_run": self.dry_run,
        }


class IncrementalRegenerator:
    """Regenerates only the artifacts a change set affects.

    A pass runs filtering, per-module regeneration, orphan cleanup,
    conditional overview regeneration and the pointer advance, in that
    order. Module failures are collected as tagged outcomes and never stop
    sibling modules. The pointer is advanced unless every attempted module
    failed or the overview could not be rebuilt; skipping it only widens
    the next run.

    Example:
        >>> regenerator = IncrementalRegenerator(
        ...     paths=paths, generator=generator, source=source, analyzer=analyzer
        ... )
        >>> result = regenerator.run(source.pending_changes(), inventory)
        >>> result.updated_files
        ['modules/generators.md', 'modules/services.md']
    """

    def __init__(
        self,
        *,
        paths: ContextPaths,
        generator: ArtifactGenerator,
        source: GitChangeSource,
        analyzer: ChangeAnalyzer,
    ) -> None:
        """Initialize the regenerator.

        Args:
            paths: Artifact tree layout.
            generator: Content-generation collaborator.
            source: Change source used for the current revision and pointer.
            analyzer: Analyzer carrying the change filter.
        """
        self.paths = paths
        self.generator = generator
        self.source = source
        self.analyzer = analyzer
        self.stage = Stage.IDLE

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        logger.debug("Entering stage", stage=stage.value)

    def run(
        self,
        changes: ChangeSet,
        inventory: FileInventory,
        analysis: ChangeAnalysis | None = None,
        *,
        dry_run: bool = False,
    ) -> RegenerationResult:
        """Run one regeneration pass.

        Args:
            changes: Raw change set.
            inventory: Current file inventory.
            analysis: Precomputed analysis of ``changes``; computed if None.
            dry_run: Plan only, write nothing and keep the pointer.

        Returns:
            RegenerationResult. Module failures are reported in it, not
            raised; call ``raise_for_failures`` to turn them into an error.

        Raises:
            NotAVersionControlledTree: If the repository is gone.
            ChangeSourceError: If HEAD cannot be resolved.
        """
        revision = self.source.current_revision()
        result = RegenerationResult(revision=revision, dry_run=dry_run)
        log = logger.bind(revision=revision[:8], dry_run=dry_run)

        try:
            self._enter(Stage.FILTERING)
            if analysis is None:
                analysis = self.analyzer.analyze(changes, inventory)

            if not analysis.has_work:
                log.info("No relevant changes, nothing to regenerate")
                self._advance_pointer(result, log)
                return result

            modules = group_modules(inventory)
            if not dry_run:
                self.paths.create_directories()

            self._enter(Stage.MODULE_REGENERATION)
            targets = [modules[key] for key in analysis.affected_keys if key in modules]
            outcomes = [self._regenerate_module(m, dry_run=dry_run) for m in targets]
            for outcome in outcomes:
                if outcome.ok and outcome.artifact:
                    result.updated_files.append(outcome.artifact)
                elif outcome.error:
                    result.failures.append(ModuleFailure(outcome.module, outcome.error))

            self._enter(Stage.ORPHAN_CLEANUP)
            result.removed_files = self._cleanup_orphans(modules, dry_run=dry_run)

            self._enter(Stage.OVERVIEW_REGENERATION)
            if analysis.overview_needed or result.updated_files or result.removed_files:
                self._regenerate_overview(result, inventory, dry_run=dry_run)

            all_failed = bool(outcomes) and not any(o.ok for o in outcomes)
            if all_failed:
                log.warning("Every module failed, keeping reference pointer")
            elif result.overview_error is not None:
                log.warning("Overview failed, keeping reference pointer")
            else:
                self._advance_pointer(result, log)

            log.info(
                "Regeneration finished",
                updated=result.updated,
                removed=result.removed,
                overview=result.overview_updated,
                failures=len(result.failures),
                pointer_advanced=result.pointer_advanced,
            )
            return result
        finally:
            self.stage = Stage.IDLE

    def _regenerate_module(self, module: Module, *, dry_run: bool) -> ModuleOutcome:
        artifact_path = self.paths.module_artifact(module.slug)
        relative = self.paths.docs_relative(artifact_path)
        log = logger.bind(module=module.name, artifact=relative)

        if dry_run:
            return ModuleOutcome.success(module.name, relative)

        log.info("Regenerating module")
        try:
            content = self.generator.generate_module_artifact(module)
            artifact_path.parent.mkdir(parents=True, exist_ok=True)
            artifact_path.write_text(content, encoding="utf-8", errors="surrogateescape")
        except Exception as e:
            log.warning("Module regeneration failed", error=_error_text(e))
            return ModuleOutcome.failure(module.name, _error_text(e))
        return ModuleOutcome.success(module.name, relative)

    def _cleanup_orphans(self, modules: dict[str, Module], *, dry_run: bool) -> list[str]:
        modules_dir = self.paths.modules_dir
        if not modules_dir.is_dir():
            return []

        expected = {f"{slug}.md" for slug in current_slugs(modules)}
        removed = []
        for entry in sorted(modules_dir.iterdir()):
            if entry.name in expected and entry.is_file():
                continue
            relative = self.paths.docs_relative(entry)
            if dry_run:
                removed.append(relative)
                continue
            try:
                _remove(entry)
            except OSError as e:
                logger.warning("Could not remove orphaned artifact", path=relative, error=str(e))
                continue
            logger.info("Removed orphaned artifact", path=relative)
            removed.append(relative)
        return removed

    def _regenerate_overview(
        self, result: RegenerationResult, inventory: FileInventory, *, dry_run: bool
    ) -> None:
        if dry_run:
            result.overview_updated = True
            return
        try:
            overview = self.generator.generate_overview_artifact(inventory)
            index = self.generator.generate_index_artifact(inventory)
            self.paths.docs_dir.mkdir(parents=True, exist_ok=True)
            self.paths.overview_md.write_text(overview, encoding="utf-8", errors="surrogateescape")
            self.paths.index_md.write_text(index, encoding="utf-8", errors="surrogateescape")
        except Exception as e:
            logger.warning("Overview regeneration failed", error=_error_text(e))
            result.overview_error = _error_text(e)
            return
        result.overview_updated = True
        logger.info("Regenerated overview and index")

    def _advance_pointer(self, result: RegenerationResult, log: structlog.BoundLogger) -> None:
        if result.dry_run or result.revision is None:
            return
        self._enter(Stage.POINTER_ADVANCE)
        result.pointer_advanced = self.source.persist_reference(result.revision)
        if not result.pointer_advanced:
            log.warning("Reference pointer not saved, next run will reprocess")


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _error_text(error: Exception) -> str:
    return str(error) or type(error).__name__
