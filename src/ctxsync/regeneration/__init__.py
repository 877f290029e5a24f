"""Incremental artifact regeneration."""

from ctxsync.regeneration.orchestrator import (
    IncrementalRegenerator,
    ModuleFailure,
    ModuleOutcome,
    RegenerationResult,
    Stage,
)

__all__ = [
    "IncrementalRegenerator",
    "ModuleFailure",
    "ModuleOutcome",
    "RegenerationResult",
    "Stage",
]
