"""Gemini CLI executor."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from ctxsync.executors.base import BaseExecutor, ExecResult, LogPaths
from ctxsync.infra.command import CommandRunner

logger = structlog.get_logger()

RESPONSE_KEYS = ("response", "text")


def parse_json_output(content: str) -> dict[str, Any]:
    """Parse the JSON document gemini printed.

    Falls back to the last line that parses as a JSON object, since the
    CLI may print status lines before the document.
    """
    content = content.strip()
    if not content:
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        return data

    for line in reversed(content.splitlines()):
        line = line.strip()
        if not (line.startswith("{") and line.endswith("}")):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return {}


class GeminiExecutor(BaseExecutor):
    """Runs the Gemini CLI with JSON output.

    The ``response`` field of the printed document becomes the generated
    text; raw stdout is used when no such field exists. Gemini only reads
    files inside its working directory, so prompts must live under the
    repository.
    """

    def __init__(
        self,
        *,
        cmd: CommandRunner,
        binary: str = "gemini",
        extra_args: list[str] | None = None,
        default_model: str | None = None,
        output_format: str = "json",
    ) -> None:
        """Initialize the Gemini executor.

        Args:
            cmd: CommandRunner instance.
            binary: Path to the gemini binary.
            extra_args: Additional arguments to pass to gemini.
            default_model: Model to request (e.g., "gemini-2.5-pro").
            output_format: Value for ``--output-format``; empty to omit.
        """
        super().__init__(binary=binary, extra_args=extra_args, default_model=default_model)
        self.cmd = cmd
        self.output_format = output_format

    @property
    def name(self) -> str:
        """Engine name."""
        return "gemini"

    def build_command(
        self,
        *,
        prompt_path: Path,
        cwd: Path,  # noqa: ARG002
        out_path: Path,  # noqa: ARG002
    ) -> list[str]:
        """Argv for a non-interactive gemini run."""
        command = [self.binary]
        if self.default_model:
            command += ["--model", self.default_model]
        # Default approval mode never auto-approves file edits.
        command += ["--approval-mode", "default"]
        if self.output_format:
            command += ["--output-format", self.output_format]
        return [*command, *self.extra_args, "--prompt", f"@{prompt_path}"]

    def run_text(
        self,
        *,
        cwd: Path,
        prompt_path: Path,
        out_path: Path,
        logs: LogPaths,
        timeout: int | None = None,
    ) -> ExecResult:
        """Answer a prompt with Gemini.

        Raises:
            ExecutorError: If gemini cannot be started or times out.
        """
        command = self.build_command(prompt_path=prompt_path, cwd=cwd, out_path=out_path)
        log = logger.bind(executor=self.name, prompt=prompt_path.name, model=self.default_model)
        log.info("Running Gemini")

        returncode = self._run_cli(self.cmd, command, cwd=cwd, logs=logs, timeout=timeout)

        stdout = (
            logs.stdout.read_text(encoding="utf-8", errors="replace")
            if logs.stdout.exists()
            else ""
        )
        extra = parse_json_output(stdout)
        text = next((str(extra[k]) for k in RESPONSE_KEYS if extra.get(k)), "")
        if not text and stdout:
            log.warning("No response field in output, using raw stdout", parsed=bool(extra))
            text = stdout
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text)

        if returncode != 0:
            log.warning("Gemini returned non-zero exit code", code=returncode)
            return self._result(
                logs,
                returncode=returncode,
                out_path=out_path,
                command=command,
                extra=extra,
                error_message=f"Gemini failed with exit code {returncode}",
            )

        log.info("Gemini completed")
        return self._result(logs, out_path=out_path, command=command, extra=extra)
