"""Tests for the executor-backed artifact generator."""

from __future__ import annotations

from pathlib import Path

import pytest

from ctxsync.config import CtxSyncConfig
from ctxsync.exceptions import GenerationError
from ctxsync.executors import FakeExecutor, FakeScenario
from ctxsync.frontmatter import split_front_matter
from ctxsync.generation.generator import ExecutorArtifactGenerator
from ctxsync.inventory import FileInventory
from ctxsync.modules import Module, group_modules
from ctxsync.paths import ContextPaths

from conftest import SAMPLE_FILES, write_files


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project directory with the sample files on disk."""
    write_files(tmp_path, SAMPLE_FILES)
    return tmp_path


@pytest.fixture
def inventory(project: Path) -> FileInventory:
    """Inventory of the sample files."""
    return FileInventory.from_paths(project, list(SAMPLE_FILES))


@pytest.fixture
def generators(inventory: FileInventory) -> Module:
    """The generators module."""
    return group_modules(inventory)["generators"]


def _generator(project: Path, executor: FakeExecutor, config: CtxSyncConfig | None = None):
    return ExecutorArtifactGenerator(
        executor=executor, paths=ContextPaths(repo_root=project), config=config
    )


class TestModuleArtifact:
    """Tests for generate_module_artifact."""

    def test_wraps_executor_output(self, project: Path, generators: Module) -> None:
        """Front matter, title, body and file list are assembled."""
        content = _generator(project, FakeExecutor()).generate_module_artifact(generators)

        data, body = split_front_matter(content)
        assert data is not None
        assert data["module"] == "Generators"
        assert data["files"] == 3
        assert "last_modified" in data
        assert "generated" in data
        assert body.startswith("# Generators\n\nGenerated documentation for module_generators.")
        assert "- `src/generators/a.ts`" in body
        assert body.rstrip().endswith("*Generated by ctxsync*")

    def test_prompt_is_materialized(self, project: Path, generators: Module) -> None:
        """The prompt carries the module's file samples."""
        executor = FakeExecutor()

        _generator(project, executor).generate_module_artifact(generators)

        prompt = ContextPaths(repo_root=project).prompt_path("module_generators")
        text = prompt.read_text()
        assert "**Module**: Generators" in text
        assert "File: src/generators/a.ts" in text
        assert "export const a = 1;" in text
        assert executor.calls == ["module_generators"]

    def test_samples_are_truncated(self, project: Path, generators: Module) -> None:
        """Long files are cut to the configured sample size."""
        (project / "src/generators/a.ts").write_text("x" * 500)
        config = CtxSyncConfig()
        config.context.max_sample_chars = 100
        config.context.max_sample_files = 1

        _generator(project, FakeExecutor(), config).generate_module_artifact(generators)

        text = ContextPaths(repo_root=project).prompt_path("module_generators").read_text()
        assert "x" * 100 + "..." in text
        assert "x" * 101 not in text
        assert "File: src/generators/b.ts" not in text

    def test_executor_front_matter_is_replaced(self, project: Path, generators: Module) -> None:
        """Front matter returned by the model does not leak into the artifact."""
        executor = FakeExecutor(
            scenarios=[
                FakeScenario(
                    name="module_generators",
                    text_output="---\nstatus: unfilled\n---\n\nReal body.\n",
                )
            ]
        )

        content = _generator(project, executor).generate_module_artifact(generators)

        data, body = split_front_matter(content)
        assert data is not None
        assert "status" not in data
        assert "Real body." in body

    def test_executor_failure(self, project: Path, generators: Module) -> None:
        """A failed executor run raises GenerationError."""
        executor = FakeExecutor(
            scenarios=[FakeScenario(name="module_generators", should_fail=True)]
        )

        with pytest.raises(GenerationError) as exc_info:
            _generator(project, executor).generate_module_artifact(generators)
        assert exc_info.value.module == "Generators"
        assert "Simulated failure" in str(exc_info.value)

    def test_undecodable_output(self, project: Path, generators: Module) -> None:
        """Bytes that are not UTF-8 are replaced, not raised."""

        class RawBytesExecutor(FakeExecutor):
            def run_text(self, *, out_path: Path, **kwargs):
                result = super().run_text(out_path=out_path, **kwargs)
                out_path.write_bytes(b"Body \xff\xfe text.\n")
                return result

        content = _generator(project, RawBytesExecutor()).generate_module_artifact(generators)

        _, body = split_front_matter(content)
        assert "Body \ufffd\ufffd text." in body

    def test_empty_output(self, project: Path, generators: Module) -> None:
        """A blank answer is a failure."""
        executor = FakeExecutor(
            scenarios=[FakeScenario(name="module_generators", text_output="  \n")]
        )

        with pytest.raises(GenerationError, match="no content"):
            _generator(project, executor).generate_module_artifact(generators)


class TestOverviewAndIndex:
    """Tests for the template-rendered artifacts."""

    def test_overview_without_source(self, project: Path, inventory: FileInventory) -> None:
        """Without a change source git details are placeholders."""
        content = _generator(project, FakeExecutor()).generate_overview_artifact(inventory)

        assert content.startswith("# Project Overview")
        assert "- **Branch**: unknown" in content
        assert "- **Total Files**: 6" in content
        assert "| [Services](./modules/services.md) | 2 |" in content

    def test_index_lists_modules(self, project: Path, inventory: FileInventory) -> None:
        """Every module is linked from the index."""
        content = _generator(project, FakeExecutor()).generate_index_artifact(inventory)

        for slug in ("generators", "services", "root-files"):
            assert f"(./modules/{slug}.md)" in content
        assert "[Overview](./overview.md)" in content
