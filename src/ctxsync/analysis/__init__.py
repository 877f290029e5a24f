"""Change analysis."""

from ctxsync.analysis.analyzer import (
    ChangeAnalysis,
    ChangeAnalyzer,
    CostEstimate,
    ImpactLevel,
    ModuleImpact,
)

__all__ = [
    "ChangeAnalysis",
    "ChangeAnalyzer",
    "CostEstimate",
    "ImpactLevel",
    "ModuleImpact",
]
