"""Executor protocol and the result of a single LLM CLI run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from ctxsync.exceptions import CommandError, ExecutorError
from ctxsync.infra.command import CommandRunner

logger = structlog.get_logger()


@dataclass
class LogPaths:
    """Where an executor run writes its console output."""

    stdout: Path
    stderr: Path


@dataclass
class ExecResult:
    """Outcome of turning one prompt into text.

    Attributes:
        returncode: Exit code of the CLI.
        stdout_path: Captured console output.
        stderr_path: Captured error output.
        out_path: File holding the generated text.
        command: Argv that was run.
        extra: Structured data parsed from the CLI output, if any.
        success: False when the adapter judged the run failed.
        error_message: Short reason for a failed run.
    """

    returncode: int
    stdout_path: Path
    stderr_path: Path
    out_path: Path | None = None
    command: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error_message: str = ""

    @property
    def failed(self) -> bool:
        """True on an adapter-reported failure or a non-zero exit."""
        return self.returncode != 0 or not self.success

    def read_output(self) -> str:
        """Generated text, or an empty string if nothing was written."""
        if self.out_path is None or not self.out_path.exists():
            return ""
        return self.out_path.read_text(encoding="utf-8", errors="replace")

    def read_stderr(self) -> str:
        """Captured error output, or an empty string."""
        if not self.stderr_path.exists():
            return ""
        return self.stderr_path.read_text(encoding="utf-8", errors="replace")

    def failure_summary(self, limit: int = 300) -> str:
        """Error message plus the tail of stderr."""
        tail = self.read_stderr().strip()[-limit:]
        if not tail:
            return self.error_message or f"exit code {self.returncode}"
        return f"{self.error_message}: {tail}" if self.error_message else tail


@runtime_checkable
class Executor(Protocol):
    """An LLM CLI that turns a prompt file into a text file.

    Content generation depends on this protocol only, so engines can be
    swapped through configuration.
    """

    @property
    def name(self) -> str:
        """Engine name as used in configuration."""
        ...

    def run_text(
        self,
        *,
        cwd: Path,
        prompt_path: Path,
        out_path: Path,
        logs: LogPaths,
        timeout: int | None = None,
    ) -> ExecResult:
        """Answer a prompt.

        Args:
            cwd: Repository the model may read.
            prompt_path: Materialized prompt.
            out_path: File to write the answer to.
            logs: Console capture files.
            timeout: Seconds before the run is abandoned.

        Returns:
            ExecResult describing the run.
        """
        ...


class BaseExecutor:
    """Common state for CLI adapters: binary, extra args and model."""

    def __init__(
        self,
        *,
        binary: str,
        extra_args: list[str] | None = None,
        default_model: str | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            binary: CLI binary name or path.
            extra_args: Arguments appended to every invocation.
            default_model: Model requested from the CLI, if any.
        """
        self.binary = binary
        self.extra_args = list(extra_args or [])
        self.default_model = default_model

    @property
    def name(self) -> str:
        """Engine name."""
        raise NotImplementedError

    def build_command(self, *, prompt_path: Path, cwd: Path, out_path: Path) -> list[str]:
        """Argv for answering ``prompt_path``."""
        raise NotImplementedError

    def _result(
        self,
        logs: LogPaths,
        *,
        returncode: int = 0,
        out_path: Path | None = None,
        command: list[str] | None = None,
        extra: dict[str, Any] | None = None,
        error_message: str = "",
    ) -> ExecResult:
        """Build an ExecResult; a non-empty error_message marks a failure."""
        return ExecResult(
            returncode=returncode,
            stdout_path=logs.stdout,
            stderr_path=logs.stderr,
            out_path=out_path,
            command=command or [],
            extra=extra or {},
            success=not error_message,
            error_message=error_message,
        )

    def _run_cli(
        self,
        cmd: CommandRunner,
        command: list[str],
        *,
        cwd: Path,
        logs: LogPaths,
        timeout: int | None,
    ) -> int:
        """Run the CLI with console output captured to ``logs``.

        Returns:
            The exit code.

        Raises:
            ExecutorError: If the binary is missing or the run times out.
        """
        try:
            result = cmd.run(
                command,
                cwd=cwd,
                stdout_path=logs.stdout,
                stderr_path=logs.stderr,
                timeout=timeout,
            )
        except CommandError as e:
            logger.error("Executor could not run", executor=self.name, error=str(e))
            raise ExecutorError(
                str(e),
                executor_name=self.name,
                stdout_path=logs.stdout,
                stderr_path=logs.stderr,
            ) from e
        return result.returncode
