"""Tests for the incremental regeneration orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest

from ctxsync.analysis.analyzer import ChangeAnalyzer
from ctxsync.exceptions import GenerationError, PartialFailure
from ctxsync.inventory import FileInventory
from ctxsync.modules import Module, current_slugs, group_modules
from ctxsync.paths import ContextPaths
from ctxsync.regeneration.orchestrator import IncrementalRegenerator, Stage
from ctxsync.vcs.changes import ChangeSet

REVISION = "c0ffee0000000000000000000000000000000000"


class StubSource:
    """Change source double recording pointer writes."""

    def __init__(self, *, save_ok: bool = True) -> None:
        self.saved: list[str] = []
        self.save_ok = save_ok

    def current_revision(self) -> str:
        return REVISION

    def persist_reference(self, revision: str) -> bool:
        if self.save_ok:
            self.saved.append(revision)
        return self.save_ok


class StubGenerator:
    """Generator double with per-module failure injection."""

    def __init__(
        self,
        *,
        failing: set[str] | None = None,
        crashing: set[str] | None = None,
        overview_fails: bool = False,
    ) -> None:
        self.failing = failing or set()
        self.crashing = crashing or set()
        self.overview_fails = overview_fails
        self.generated: list[str] = []

    def generate_module_artifact(self, module: Module) -> str:
        if module.key in self.failing:
            msg = f"generation failed for {module.name}"
            raise GenerationError(msg, module=module.name)
        if module.key in self.crashing:
            raise RuntimeError
        self.generated.append(module.key)
        return f"# {module.name}\n"

    def generate_overview_artifact(self, inventory: FileInventory) -> str:
        if self.overview_fails:
            msg = "overview failed"
            raise GenerationError(msg)
        return f"# Overview\n{inventory.total_files} files\n"

    def generate_index_artifact(self, inventory: FileInventory) -> str:  # noqa: ARG002
        return "# Index\n"


@pytest.fixture
def paths(tmp_path: Path) -> ContextPaths:
    """Artifact layout in a temporary directory."""
    return ContextPaths(repo_root=tmp_path)


@pytest.fixture
def inventory_after_delete(tmp_path: Path) -> FileInventory:
    """Inventory once src/services/y.ts has been deleted."""
    return FileInventory.from_paths(
        tmp_path,
        ["src/generators/a.ts", "src/generators/b.ts", "src/generators/x.ts", "src/services/z.ts"],
    )


def _regenerator(
    paths: ContextPaths, generator: StubGenerator, source: StubSource
) -> IncrementalRegenerator:
    return IncrementalRegenerator(
        paths=paths, generator=generator, source=source, analyzer=ChangeAnalyzer()
    )


SCENARIO = ChangeSet(modified=["src/generators/x.ts"], deleted=["src/services/y.ts"])


class TestRegeneration:
    """Happy path and no-op behavior."""

    def test_scenario(self, paths: ContextPaths, inventory_after_delete: FileInventory) -> None:
        """Both modules are regenerated, then the overview, then the pointer."""
        source = StubSource()
        regenerator = _regenerator(paths, StubGenerator(), source)

        result = regenerator.run(SCENARIO, inventory_after_delete)

        assert result.updated_files == ["modules/services.md", "modules/generators.md"]
        assert result.removed == 0
        assert result.overview_updated
        assert paths.module_artifact("generators").read_text() == "# Generators\n"
        assert paths.overview_md.read_text().startswith("# Overview")
        assert paths.index_md.exists()
        assert result.pointer_advanced
        assert source.saved == [REVISION]
        assert regenerator.stage is Stage.IDLE

    def test_empty_change_set_is_noop(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """Nothing to do is a successful result that still advances the pointer."""
        source = StubSource()
        generator = StubGenerator()

        result = _regenerator(paths, generator, source).run(ChangeSet(), inventory_after_delete)

        assert (result.updated, result.removed, result.overview_updated) == (0, 0, False)
        assert generator.generated == []
        assert not paths.docs_dir.exists()
        assert result.pointer_advanced

    def test_single_module_update_refreshes_overview(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """A rewritten module artifact also rebuilds the overview and index."""
        changes = ChangeSet(modified=["src/generators/x.ts"])
        assert not ChangeAnalyzer().analyze(changes, inventory_after_delete).overview_needed

        result = _regenerator(paths, StubGenerator(), StubSource()).run(
            changes, inventory_after_delete
        )

        assert result.updated_files == ["modules/generators.md"]
        assert result.overview_updated
        assert paths.overview_md.exists()
        assert paths.index_md.exists()

    def test_idempotent_second_run(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """A second run with no new changes does nothing."""
        regenerator = _regenerator(paths, StubGenerator(), StubSource())
        regenerator.run(SCENARIO, inventory_after_delete)

        second = regenerator.run(ChangeSet(), inventory_after_delete)

        assert (second.updated, second.removed) == (0, 0)

    def test_dry_run_writes_nothing(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """A dry run plans the same work without touching disk or pointer."""
        source = StubSource()
        generator = StubGenerator()

        result = _regenerator(paths, generator, source).run(
            SCENARIO, inventory_after_delete, dry_run=True
        )

        assert result.dry_run
        assert result.updated_files == ["modules/services.md", "modules/generators.md"]
        assert result.overview_updated
        assert not result.pointer_advanced
        assert generator.generated == []
        assert source.saved == []
        assert not paths.artifact_root.exists()


class TestFailureIsolation:
    """Continue-on-error behavior."""

    def test_one_failure_does_not_block_siblings(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """Other modules are still written and the pointer still advances."""
        source = StubSource()
        generator = StubGenerator(failing={"services"})

        result = _regenerator(paths, generator, source).run(SCENARIO, inventory_after_delete)

        assert result.updated_files == ["modules/generators.md"]
        assert [f.module for f in result.failures] == ["Services"]
        assert "generation failed" in result.failures[0].reason
        assert result.overview_updated
        assert result.pointer_advanced
        with pytest.raises(PartialFailure) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.result is result

    def test_unexpected_error_is_recorded(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """An arbitrary exception becomes a failure entry instead of aborting the pass."""
        source = StubSource()
        regenerator = _regenerator(paths, StubGenerator(crashing={"services"}), source)

        result = regenerator.run(SCENARIO, inventory_after_delete)

        assert result.updated_files == ["modules/generators.md"]
        assert paths.module_artifact("generators").exists()
        assert [(f.module, f.reason) for f in result.failures] == [("Services", "RuntimeError")]
        assert result.overview_updated
        assert result.pointer_advanced
        assert regenerator.stage is Stage.IDLE

    def test_all_failures_keep_pointer(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """If every module fails the pointer is not advanced."""
        source = StubSource()
        generator = StubGenerator(failing={"services", "generators"})

        result = _regenerator(paths, generator, source).run(SCENARIO, inventory_after_delete)

        assert result.updated == 0
        assert len(result.failures) == 2
        assert not result.pointer_advanced
        assert source.saved == []

    def test_overview_failure_keeps_pointer(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """A failed overview leaves the pointer for the next run."""
        source = StubSource()
        generator = StubGenerator(overview_fails=True)

        result = _regenerator(paths, generator, source).run(SCENARIO, inventory_after_delete)

        assert result.updated == 2
        assert result.overview_error == "overview failed"
        assert not result.overview_updated
        assert not result.pointer_advanced

    def test_pointer_write_failure_is_not_fatal(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """A lost pointer only costs recomputation."""
        result = _regenerator(paths, StubGenerator(), StubSource(save_ok=False)).run(
            SCENARIO, inventory_after_delete
        )

        assert result.updated == 2
        assert not result.pointer_advanced
        result.raise_for_failures()


class TestOrphanCleanup:
    """Artifacts for vanished modules are deleted."""

    def test_removes_orphans(
        self, paths: ContextPaths, inventory_after_delete: FileInventory
    ) -> None:
        """Every remaining artifact matches a current module slug."""
        paths.modules_dir.mkdir(parents=True)
        (paths.modules_dir / "legacy.md").write_text("# Legacy\n")
        (paths.modules_dir / "stray-dir").mkdir()
        (paths.modules_dir / "generators.md").write_text("# Old generators\n")

        result = _regenerator(paths, StubGenerator(), StubSource()).run(
            ChangeSet(modified=["src/generators/x.ts"]), inventory_after_delete
        )

        assert result.removed_files == ["modules/legacy.md", "modules/stray-dir"]
        assert result.overview_updated
        slugs = current_slugs(group_modules(inventory_after_delete))
        for entry in paths.modules_dir.iterdir():
            assert entry.is_file()
            assert entry.stem in slugs

    def test_deleted_module_is_removed_not_regenerated(self, paths: ContextPaths) -> None:
        """A module whose last file was deleted loses its artifact."""
        inventory = FileInventory.from_paths(paths.repo_root, ["src/generators/a.ts"])
        paths.modules_dir.mkdir(parents=True)
        (paths.modules_dir / "services.md").write_text("# Services\n")
        generator = StubGenerator()

        result = _regenerator(paths, generator, StubSource()).run(
            ChangeSet(deleted=["src/services/y.ts", "src/services/z.ts"]), inventory
        )

        assert generator.generated == []
        assert result.removed_files == ["modules/services.md"]
        assert result.overview_updated
        assert result.pointer_advanced
