"""Artifact tree layout for ctxsync."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DOCS_DIRNAME = "docs"
MODULES_DIRNAME = "modules"
INDEX_FILENAME = "README.md"
OVERVIEW_FILENAME = "overview.md"
WORK_DIRNAME = ".ctxsync"


@dataclass(frozen=True)
class ContextPaths:
    """Locations of everything ctxsync reads or writes inside a repository.

    Attributes:
        repo_root: Root of the target git repository.
        output_dir: Artifact root, relative to repo_root (e.g. ".context").
        reference_file: Sidecar reference record, relative to repo_root.

    Example:
        >>> paths = ContextPaths(Path("/project"))
        >>> paths.module_artifact("generators")
        PosixPath('/project/.context/docs/modules/generators.md')
    """

    repo_root: Path
    output_dir: str = ".context"
    reference_file: str = "context-log.json"

    @property
    def artifact_root(self) -> Path:
        """Root of the generated artifact tree."""
        return self.repo_root / self.output_dir

    @property
    def docs_dir(self) -> Path:
        """Directory holding documentation artifacts."""
        return self.artifact_root / DOCS_DIRNAME

    @property
    def modules_dir(self) -> Path:
        """Directory holding one artifact per module."""
        return self.docs_dir / MODULES_DIRNAME

    @property
    def index_md(self) -> Path:
        """Path to the documentation index."""
        return self.docs_dir / INDEX_FILENAME

    @property
    def overview_md(self) -> Path:
        """Path to the project overview."""
        return self.docs_dir / OVERVIEW_FILENAME

    @property
    def reference_json(self) -> Path:
        """Path to the persisted reference pointer record."""
        return self.repo_root / self.reference_file

    @property
    def work_dir(self) -> Path:
        """Scratch directory for prompts and executor logs."""
        return self.repo_root / WORK_DIRNAME

    @property
    def prompts_dir(self) -> Path:
        """Directory for materialized prompts."""
        return self.work_dir / "prompts"

    @property
    def logs_dir(self) -> Path:
        """Directory for executor logs."""
        return self.work_dir / "logs"

    @property
    def outputs_dir(self) -> Path:
        """Directory for raw executor output."""
        return self.work_dir / "outputs"

    def module_artifact(self, slug: str) -> Path:
        """Path of the artifact for a module slug."""
        return self.modules_dir / f"{slug}.md"

    def docs_relative(self, path: Path) -> str:
        """Express an artifact path relative to the docs directory (POSIX)."""
        return path.relative_to(self.docs_dir).as_posix()

    def prompt_path(self, name: str) -> Path:
        """Path for a materialized prompt."""
        return self.prompts_dir / f"{name}.md"

    def output_path(self, name: str) -> Path:
        """Path where an executor writes its answer to a prompt."""
        return self.outputs_dir / f"{name}.md"

    def log_paths(self, name: str) -> tuple[Path, Path]:
        """Stdout and stderr log paths for an executor run."""
        return (
            self.logs_dir / f"{name}.stdout.log",
            self.logs_dir / f"{name}.stderr.log",
        )

    def internal_prefixes(self) -> list[str]:
        """Repository-relative prefixes that ctxsync itself owns.

        Paths under these never count as source changes.
        """
        return [
            f"{Path(self.output_dir).as_posix().strip('/')}/",
            f"{WORK_DIRNAME}/",
        ]

    def is_internal(self, relative_path: str) -> bool:
        """Check whether a repository-relative path belongs to ctxsync."""
        if relative_path == Path(self.reference_file).as_posix():
            return True
        return any(relative_path.startswith(p) for p in self.internal_prefixes())

    def create_directories(self) -> None:
        """Create the artifact and work directories (idempotent)."""
        self.modules_dir.mkdir(parents=True, exist_ok=True)
        self.prompts_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self.outputs_dir.mkdir(parents=True, exist_ok=True)
