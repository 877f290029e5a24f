"""Custom exceptions for ctxsync."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ctxsync.regeneration.orchestrator import RegenerationResult


class CtxSyncError(Exception):
    """Base exception for all ctxsync errors."""

    pass


class NotAVersionControlledTree(CtxSyncError):
    """Raised when the target directory is not inside a git work tree."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ArtifactRootError(CtxSyncError):
    """Raised when the artifact tree exists but cannot be read."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class CorpusNotInitialized(CtxSyncError):
    """Raised when an incremental update is requested before any artifacts exist."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ChangeSourceError(CtxSyncError):
    """Raised when a git query fails for a non-recoverable reason."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.path = path


class ExecutorError(CtxSyncError):
    """Raised when an executor fails to run a command."""

    def __init__(
        self,
        message: str,
        *,
        executor_name: str = "",
        returncode: int | None = None,
        stdout_path: Path | None = None,
        stderr_path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.executor_name = executor_name
        self.returncode = returncode
        self.stdout_path = stdout_path
        self.stderr_path = stderr_path


class GenerationError(CtxSyncError):
    """Raised when the content generator cannot produce an artifact body."""

    def __init__(self, message: str, *, module: str = "") -> None:
        super().__init__(message)
        self.module = module


class ConfigError(CtxSyncError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_path: Path | None = None,
        field: str = "",
    ) -> None:
        super().__init__(message)
        self.config_path = config_path
        self.field = field


class CommandError(CtxSyncError):
    """Raised when a subprocess command fails."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        cwd: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.cwd = cwd


class PartialFailure(CtxSyncError):
    """Raised when some module regenerations failed.

    The regeneration pass itself completed; ``result`` holds what was
    updated, removed and which modules failed.
    """

    def __init__(self, message: str, *, result: RegenerationResult) -> None:
        super().__init__(message)
        self.result = result
