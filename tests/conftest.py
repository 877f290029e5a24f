"""Pytest fixtures for ctxsync tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import pytest
import structlog

from ctxsync.config import CtxSyncConfig, EngineType
from ctxsync.executors.fake import FakeExecutor
from ctxsync.infra.command import CommandRunner
from ctxsync.inventory import FileInventory
from ctxsync.paths import ContextPaths


def git(repo: Path, *args: str) -> str:
    """Run a git command in a test repository and return stdout."""
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_all(repo: Path, message: str) -> str:
    """Stage everything, commit and return the new HEAD."""
    git(repo, "add", "-A")
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def write_files(repo: Path, files: dict[str, str]) -> None:
    """Write files relative to the repository root."""
    for relative, content in files.items():
        path = repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Drop logging config bound to a previous test's (now closed) stream."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


SAMPLE_FILES = {
    "src/generators/a.ts": "export const a = 1;\n",
    "src/generators/b.ts": "export const b = 2;\n",
    "src/generators/x.ts": "export const x = 3;\n",
    "src/services/y.ts": "export const y = 4;\n",
    "src/services/z.ts": "export const z = 5;\n",
    "README.md": "# Sample\n",
}


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory (not a git repository)."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository.

    Creates a repo on branch main with one commit holding:
    - src/generators/{a,b,x}.ts
    - src/services/{y,z}.ts
    - README.md
    """
    repo = tmp_path / "repo"
    repo.mkdir()

    git(repo, "init")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")

    write_files(repo, SAMPLE_FILES)
    commit_all(repo, "Initial commit")
    git(repo, "branch", "-M", "main")

    return repo


@pytest.fixture
def command_runner() -> CommandRunner:
    """Create a CommandRunner instance."""
    return CommandRunner(heartbeat_interval=0)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """Create a FakeExecutor answering every prompt with a placeholder."""
    return FakeExecutor()


@pytest.fixture
def default_config() -> CtxSyncConfig:
    """Create a default config using the fake engine."""
    return CtxSyncConfig.default(EngineType.FAKE)


@pytest.fixture
def context_paths(tmp_git_repo: Path) -> ContextPaths:
    """Artifact layout for the temporary repository."""
    return ContextPaths(repo_root=tmp_git_repo)


@pytest.fixture
def sample_inventory(tmp_path: Path) -> FileInventory:
    """Synthetic inventory with generators (3 files) and services (2 files)."""
    return FileInventory.from_paths(
        tmp_path,
        [
            "src/generators/a.ts",
            "src/generators/b.ts",
            "src/generators/x.ts",
            "src/services/y.ts",
            "src/services/z.ts",
        ],
    )
