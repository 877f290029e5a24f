"""LLM CLI executors."""

from __future__ import annotations

from ctxsync.config import EngineConfig, EngineType
from ctxsync.executors.base import BaseExecutor, ExecResult, Executor, LogPaths
from ctxsync.executors.codex import CodexExecutor
from ctxsync.executors.fake import FakeExecutor, FakeScenario
from ctxsync.executors.gemini import GeminiExecutor
from ctxsync.infra.command import CommandRunner

__all__ = [
    "BaseExecutor",
    "CodexExecutor",
    "ExecResult",
    "Executor",
    "FakeExecutor",
    "FakeScenario",
    "GeminiExecutor",
    "LogPaths",
    "create_executor",
]


def create_executor(engine: EngineConfig, cmd: CommandRunner) -> Executor:
    """Create an executor from engine config.

    Raises:
        ValueError: If the engine type is unknown.
    """
    if engine.type == EngineType.CODEX:
        return CodexExecutor(
            cmd=cmd,
            binary=engine.binary or "codex",
            extra_args=engine.extra_args,
            default_model=engine.model,
        )
    if engine.type == EngineType.GEMINI:
        return GeminiExecutor(
            cmd=cmd,
            binary=engine.binary or "gemini",
            extra_args=engine.extra_args,
            default_model=engine.model,
        )
    if engine.type == EngineType.FAKE:
        return FakeExecutor()
    msg = f"Unknown engine type: {engine.type}"
    raise ValueError(msg)
