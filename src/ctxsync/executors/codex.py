"""Codex CLI executor."""

from __future__ import annotations

from pathlib import Path

import structlog

from ctxsync.executors.base import BaseExecutor, ExecResult, LogPaths
from ctxsync.infra.command import CommandRunner

logger = structlog.get_logger()


class CodexExecutor(BaseExecutor):
    """Runs ``codex exec`` in a read-only sandbox.

    The model may inspect the repository but not change it. Its final
    message is written straight to the output file by
    ``--output-last-message``.

    Example:
        >>> executor = CodexExecutor(cmd=CommandRunner(), default_model="gpt-5")
        >>> executor.build_command(
        ...     prompt_path=Path("p.md"), cwd=Path("/repo"), out_path=Path("o.md")
        ... )[:2]
        ['codex', 'exec']
    """

    def __init__(
        self,
        *,
        cmd: CommandRunner,
        binary: str = "codex",
        extra_args: list[str] | None = None,
        default_model: str | None = None,
    ) -> None:
        """Initialize the Codex executor.

        Args:
            cmd: CommandRunner instance.
            binary: Path to the codex binary.
            extra_args: Additional arguments to pass to codex.
            default_model: Model to request (e.g., "gpt-5").
        """
        super().__init__(binary=binary, extra_args=extra_args, default_model=default_model)
        self.cmd = cmd

    @property
    def name(self) -> str:
        """Engine name."""
        return "codex"

    def build_command(self, *, prompt_path: Path, cwd: Path, out_path: Path) -> list[str]:
        """Argv for ``codex exec``; the prompt is passed by file reference."""
        model = ["-m", self.default_model] if self.default_model else []
        return [
            self.binary,
            "exec",
            "--cd",
            str(cwd),
            "--sandbox",
            "read-only",
            *model,
            "--output-last-message",
            str(out_path),
            *self.extra_args,
            f"@{prompt_path}",
        ]

    def run_text(
        self,
        *,
        cwd: Path,
        prompt_path: Path,
        out_path: Path,
        logs: LogPaths,
        timeout: int | None = None,
    ) -> ExecResult:
        """Answer a prompt with Codex.

        Raises:
            ExecutorError: If codex cannot be started or times out.
        """
        command = self.build_command(prompt_path=prompt_path, cwd=cwd, out_path=out_path)
        log = logger.bind(executor=self.name, prompt=prompt_path.name, model=self.default_model)
        log.info("Running Codex")

        out_path.parent.mkdir(parents=True, exist_ok=True)
        returncode = self._run_cli(self.cmd, command, cwd=cwd, logs=logs, timeout=timeout)
        if returncode != 0:
            log.warning("Codex returned non-zero exit code", code=returncode)
            return self._result(
                logs,
                returncode=returncode,
                out_path=out_path,
                command=command,
                error_message=f"Codex failed with exit code {returncode}",
            )

        log.info("Codex completed")
        return self._result(logs, out_path=out_path, command=command)
