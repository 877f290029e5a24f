"""Subprocess execution for git queries and LLM CLI runs."""

from __future__ import annotations

import os
import subprocess
import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from ctxsync.exceptions import CommandError

logger = structlog.get_logger()

# Locale-independent, non-interactive git.
GIT_ENV = {"LC_ALL": "C", "GIT_PAGER": "cat", "GIT_TERMINAL_PROMPT": "0"}


@dataclass
class CommandResult:
    """Outcome of a command whose output went to log files.

    Attributes:
        returncode: Exit code of the process.
        stdout_path: File holding stdout, if captured.
        stderr_path: File holding stderr, if captured.
        command: The argv that was run.
        cwd: Working directory of the process.
    """

    returncode: int
    stdout_path: Path | None
    stderr_path: Path | None
    command: list[str]
    cwd: Path | None


def _describe(command: list[str]) -> str:
    return " ".join(command)


class CommandRunner:
    """Single entry point for every subprocess ctxsync starts.

    ``run`` streams output to files and is meant for slow LLM CLIs;
    ``run_capture`` and ``run_git`` keep output in memory.

    Example:
        >>> runner = CommandRunner()
        >>> code, out, _ = runner.run_git(["rev-parse", "HEAD"], cwd=Path("."))
        >>> code
        0
    """

    def __init__(self, heartbeat_interval: int = 30, git_binary: str = "git") -> None:
        """Initialize the runner.

        Args:
            heartbeat_interval: Seconds between progress log lines while a
                streamed command runs; 0 disables them.
            git_binary: Name or path of the git executable.
        """
        self.heartbeat_interval = heartbeat_interval
        self.git_binary = git_binary

    @staticmethod
    def _environment(extra: dict[str, str] | None) -> dict[str, str]:
        return {**os.environ, **(extra or {})}

    @contextmanager
    def _heartbeat(self, log: structlog.BoundLogger, timeout: int | None) -> Iterator[None]:
        interval = self.heartbeat_interval
        if interval <= 0 or (timeout is not None and timeout <= interval):
            yield
            return

        stop = threading.Event()

        def beat() -> None:
            waited = 0
            while not stop.wait(timeout=interval):
                waited += interval
                log.info("Command still running", elapsed_seconds=waited)

        thread = threading.Thread(target=beat, daemon=True)
        thread.start()
        try:
            yield
        finally:
            stop.set()
            thread.join(timeout=1)

    @staticmethod
    def _launch(
        command: list[str],
        log: structlog.BoundLogger,
        *,
        cwd: Path | None,
        timeout: int | None,
        **kwargs: Any,
    ) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(command, cwd=cwd, timeout=timeout, check=False, **kwargs)
        except subprocess.TimeoutExpired as e:
            log.error("Command timed out", timeout=timeout)
            msg = f"Command timed out after {timeout}s: {_describe(command)}"
            raise CommandError(msg, command=command, cwd=cwd) from e
        except FileNotFoundError as e:
            log.error("Command not found", binary=command[0])
            msg = f"Command not found: {command[0]}"
            raise CommandError(msg, command=command, cwd=cwd) from e

    @staticmethod
    def _check(command: list[str], returncode: int, cwd: Path | None) -> None:
        if returncode != 0:
            msg = f"Command failed with exit code {returncode}: {_describe(command)}"
            raise CommandError(msg, command=command, returncode=returncode, cwd=cwd)

    def run(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        stdout_path: Path | None = None,
        stderr_path: Path | None = None,
        timeout: int | None = None,
        check: bool = False,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a command with stdout and stderr written to files.

        Args:
            command: Command and arguments.
            cwd: Working directory.
            stdout_path: Where stdout goes; discarded if None.
            stderr_path: Where stderr goes; discarded if None.
            timeout: Timeout in seconds.
            check: Raise on a non-zero exit code.
            env: Variables added to the current environment.

        Returns:
            CommandResult with the exit code and log paths.

        Raises:
            CommandError: If the binary is missing, the command times out,
                or check is set and the exit code is non-zero.
        """
        log = logger.bind(command=command[0], cwd=str(cwd) if cwd else None)
        log.info("Running command", argc=len(command))

        with ExitStack() as stack:
            streams = []
            for path in (stdout_path, stderr_path):
                if path is None:
                    streams.append(subprocess.DEVNULL)
                    continue
                path.parent.mkdir(parents=True, exist_ok=True)
                streams.append(stack.enter_context(path.open("wb")))

            with self._heartbeat(log, timeout):
                completed = self._launch(
                    command,
                    log,
                    cwd=cwd,
                    timeout=timeout,
                    stdout=streams[0],
                    stderr=streams[1],
                    env=self._environment(env),
                )

        log.info("Command completed", returncode=completed.returncode)
        if check:
            self._check(command, completed.returncode, cwd)
        return CommandResult(
            returncode=completed.returncode,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
            command=command,
            cwd=cwd,
        )

    def run_capture(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = False,
        env: dict[str, str] | None = None,
    ) -> tuple[int, str, str]:
        """Run a command and return ``(returncode, stdout, stderr)``.

        Raises:
            CommandError: If the binary is missing, the command times out,
                or check is set and the exit code is non-zero.
        """
        log = logger.bind(command=command[:2], cwd=str(cwd) if cwd else None)
        log.debug("Running command (capture mode)")

        completed = self._launch(
            command,
            log,
            cwd=cwd,
            timeout=timeout,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            env=self._environment(env),
        )
        log.debug("Command completed", returncode=completed.returncode)
        if check:
            self._check(command, completed.returncode, cwd)
        return completed.returncode, completed.stdout, completed.stderr

    def run_git(
        self,
        args: list[str],
        *,
        cwd: Path,
        check: bool = True,
        timeout: int | None = None,
    ) -> tuple[int, str, str]:
        """Run a git subcommand in ``cwd``.

        Args:
            args: Subcommand and arguments, without the ``git`` binary.
            cwd: Directory inside the work tree.
            check: Raise on a non-zero exit code.
            timeout: Timeout in seconds.

        Returns:
            Tuple of (returncode, stdout, stderr).
        """
        return self.run_capture(
            [self.git_binary, *args], cwd=cwd, timeout=timeout, check=check, env=GIT_ENV
        )
