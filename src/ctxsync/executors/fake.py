"""Fake executor for testing."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from ctxsync.executors.base import BaseExecutor, ExecResult, LogPaths

logger = structlog.get_logger()


@dataclass
class FakeScenario:
    """A canned response for one prompt.

    Attributes:
        name: Prompt file stem the scenario answers (e.g. "module_utils").
        text_output: Text to write as the generated output.
        returncode: Exit code to return.
        should_fail: If True, simulate failure.
        fail_on_attempt: Only fail on this attempt number.
    """

    name: str
    text_output: str = ""
    returncode: int = 0
    should_fail: bool = False
    fail_on_attempt: int | None = None


class FakeExecutor(BaseExecutor):
    """A deterministic executor for tests and offline runs.

    Prompts are matched to scenarios by file stem. Without a matching
    scenario a short placeholder body naming the prompt is produced.

    Example:
        >>> executor = FakeExecutor(scenarios=[
        ...     FakeScenario(name="module_services", should_fail=True),
        ... ])
        >>> executor.get_scenario("module_services").should_fail
        True
    """

    def __init__(
        self,
        *,
        scenarios: list[FakeScenario] | None = None,
        default_scenario: FakeScenario | None = None,
        prompt_callback: Callable[[str, Path], None] | None = None,
    ) -> None:
        """Initialize the fake executor.

        Args:
            scenarios: Scenarios keyed by prompt stem.
            default_scenario: Scenario used when no name matches.
            prompt_callback: Called with (stem, prompt_path) before answering.
        """
        super().__init__(binary="fake")
        self._scenarios: dict[str, FakeScenario] = {}
        self._default_scenario = default_scenario
        self._attempt_counts: dict[str, int] = {}
        self._prompt_callback = prompt_callback
        self.calls: list[str] = []

        for scenario in scenarios or []:
            self._scenarios[scenario.name] = scenario

    @property
    def name(self) -> str:
        """Name of the executor."""
        return "fake"

    def add_scenario(self, scenario: FakeScenario) -> None:
        """Add or replace a scenario."""
        self._scenarios[scenario.name] = scenario

    def get_scenario(self, stem: str) -> FakeScenario:
        """Scenario for a prompt stem, falling back to the default."""
        if stem in self._scenarios:
            return self._scenarios[stem]
        if self._default_scenario is not None:
            return self._default_scenario
        return FakeScenario(
            name=stem,
            text_output=f"Generated documentation for {stem}.\n",
        )

    def get_attempt_count(self, stem: str) -> int:
        """Number of times a prompt stem was run."""
        return self._attempt_counts.get(stem, 0)

    def reset_attempts(self) -> None:
        """Reset attempt counters and the call log."""
        self._attempt_counts.clear()
        self.calls.clear()

    def build_command(
        self,
        *,
        prompt_path: Path,
        cwd: Path,  # noqa: ARG002
        out_path: Path,  # noqa: ARG002
    ) -> list[str]:
        """Pseudo command recorded in results."""
        return ["fake", "exec", "--prompt", prompt_path.stem]

    def run_text(
        self,
        *,
        cwd: Path,
        prompt_path: Path,
        out_path: Path,
        logs: LogPaths,
        timeout: int | None = None,  # noqa: ARG002
    ) -> ExecResult:
        """Answer a prompt from the matching scenario."""
        stem = prompt_path.stem
        attempt = self._attempt_counts.get(stem, 0) + 1
        self._attempt_counts[stem] = attempt
        self.calls.append(stem)
        scenario = self.get_scenario(stem)
        command = self.build_command(prompt_path=prompt_path, cwd=cwd, out_path=out_path)

        log = logger.bind(prompt=stem, attempt=attempt, scenario=scenario.name)
        log.debug("FakeExecutor answering prompt")

        logs.stdout.parent.mkdir(parents=True, exist_ok=True)
        logs.stdout.write_text(f"[fake] {stem}\n{scenario.text_output}")
        logs.stderr.write_text("")

        if self._prompt_callback:
            self._prompt_callback(stem, prompt_path)

        if scenario.should_fail and (
            scenario.fail_on_attempt is None or scenario.fail_on_attempt == attempt
        ):
            log.info("FakeExecutor simulating failure")
            logs.stderr.write_text("Simulated failure\n")
            return self._result(
                logs,
                returncode=1,
                out_path=out_path,
                command=command,
                error_message="Simulated failure",
            )

        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(scenario.text_output)
        return self._result(
            logs, returncode=scenario.returncode, out_path=out_path, command=command
        )
