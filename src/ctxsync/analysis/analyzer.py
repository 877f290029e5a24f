"""Maps change sets onto modules and estimates the regeneration work."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from ctxsync.config import AnalysisConfig
from ctxsync.inventory import FileInventory
from ctxsync.modules import Module, describe_module, format_module_name, group_modules, module_key_for_path
from ctxsync.vcs.changes import ChangeFilter, ChangeSet, Rename

logger = structlog.get_logger()

TYPES_MODULE_KEY = "types"

NO_UPDATES_NEEDED = (
    "No documentation updates needed - no relevant tracked file changes detected"
)
HIGH_IMPACT_ADVICE = "High-impact changes detected - review generated documentation carefully"
DELETIONS_ADVICE = (
    "Files were deleted - ensure corresponding documentation is properly cleaned up"
)
RENAMES_ADVICE = "Files were renamed - check that documentation references are updated"
MANY_MODULES_ADVICE = (
    "Many modules affected - consider running in stages or during low-activity periods"
)
TYPES_ADVICE = "Type definitions changed - API reference documentation may need updates"


class ImpactLevel(str, Enum):
    """How strongly a module was affected by a change set."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Ordering weight, higher is more severe."""
        return _RANK[self]


_RANK = {ImpactLevel.LOW: 1, ImpactLevel.MEDIUM: 2, ImpactLevel.HIGH: 3}


@dataclass
class ModuleImpact:
    """Changes attributed to one module.

    Attributes:
        key: Module key.
        name: Module display name.
        description: Module description.
        affected_files: Every changed path owned by the module, in change order.
        added: Added paths.
        modified: Modified paths.
        deleted: Deleted paths.
        renamed: Renames touching the module, unique by source path.
        impact: Impact level, set once all paths are attributed.
    """

    key: str
    name: str
    description: str
    affected_files: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    renamed: list[Rename] = field(default_factory=list)
    impact: ImpactLevel = ImpactLevel.LOW

    def attribute(self, category: str, path: str, rename: Rename | None = None) -> None:
        """Record a changed path under its category."""
        self.affected_files.append(path)
        if category == "added":
            self.added.append(path)
        elif category == "modified":
            self.modified.append(path)
        elif category == "deleted":
            self.deleted.append(path)
        elif rename is not None and all(r.from_path != rename.from_path for r in self.renamed):
            self.renamed.append(rename)

    def classify(self, config: AnalysisConfig) -> ImpactLevel:
        """Compute and store the impact level."""
        count = len(self.affected_files)
        if count >= config.high_impact_files or self.deleted or self.renamed:
            self.impact = ImpactLevel.HIGH
        elif count >= config.medium_impact_files:
            self.impact = ImpactLevel.MEDIUM
        else:
            self.impact = ImpactLevel.LOW
        return self.impact

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "impact": self.impact.value,
            "affected_files": list(self.affected_files),
            "added": list(self.added),
            "modified": list(self.modified),
            "deleted": list(self.deleted),
            "renamed": [r.to_dict() for r in self.renamed],
        }


@dataclass
class CostEstimate:
    """Coarse generation time estimate.

    Attributes:
        seconds: Raw modeled seconds.
        label: Human bucket ("<30s", "<1 min", "1-2 min", "~N min").
    """

    seconds: float
    label: str

    @classmethod
    def from_seconds(cls, seconds: float) -> CostEstimate:
        """Bucket a modeled duration."""
        if seconds < 30:
            label = "<30s"
        elif seconds < 60:
            label = "<1 min"
        elif seconds < 120:
            label = "1-2 min"
        else:
            label = f"~{math.ceil(seconds / 60)} min"
        return cls(seconds=seconds, label=label)


@dataclass
class ChangeAnalysis:
    """What a change set means for the artifact tree.

    Attributes:
        changes: The filtered change set the analysis is based on.
        affected_modules: Impacts sorted by level, most severe first.
        overview_needed: True if overview and index must be rebuilt.
        cost_estimate: Time estimate for the regeneration.
        recommendations: Advisory messages.
        total_changes: Paths in the raw change set.
        tracked_changes: Paths that survived filtering.
        untracked_changes: Paths dropped by filtering.
    """

    changes: ChangeSet
    affected_modules: list[ModuleImpact] = field(default_factory=list)
    overview_needed: bool = False
    cost_estimate: CostEstimate = field(default_factory=lambda: CostEstimate.from_seconds(0))
    recommendations: list[str] = field(default_factory=list)
    total_changes: int = 0
    tracked_changes: int = 0
    untracked_changes: int = 0

    @property
    def has_work(self) -> bool:
        """True if any module is affected."""
        return bool(self.affected_modules)

    @property
    def affected_keys(self) -> list[str]:
        """Keys of affected modules in sorted order."""
        return [m.key for m in self.affected_modules]

    def impact_for(self, key: str) -> ModuleImpact | None:
        """Look up a module's impact by key."""
        return next((m for m in self.affected_modules if m.key == key), None)

    def describe(self) -> str:
        """One-line summary."""
        if not self.affected_modules:
            return "No modules affected by tracked file changes"
        overview = ", overview update" if self.overview_needed else ""
        return (
            f"{len(self.affected_modules)} module(s) affected{overview} "
            f"(estimated {self.cost_estimate.label})"
        )

    def display_lines(self, verbose: bool = False) -> list[str]:
        """Render the analysis as plain text lines."""
        lines = [
            "Documentation Update Analysis",
            "=" * 60,
            "",
            "Change Summary:",
            f"  Total file changes: {self.total_changes}",
            f"  Tracked changes: {self.tracked_changes}",
        ]
        if self.untracked_changes:
            lines.append(f"  Untracked changes: {self.untracked_changes} (will be skipped)")

        lines.append("")
        if self.affected_modules:
            lines.append("Affected Modules:")
            for impact in self.affected_modules:
                lines.append(f"  * {impact.name} ({impact.impact.value} impact)")
                lines.append(f"    {impact.description}")
                lines.append(f"    Files affected: {len(impact.affected_files)}")
                if verbose:
                    if impact.added:
                        lines.append(f"    Added: {', '.join(impact.added)}")
                    if impact.modified:
                        lines.append(f"    Modified: {', '.join(impact.modified)}")
                    if impact.deleted:
                        lines.append(f"    Deleted: {', '.join(impact.deleted)}")
                    lines.extend(
                        f"    Renamed: {r.from_path} -> {r.to_path}" for r in impact.renamed
                    )
        else:
            lines.append("No modules affected by tracked file changes")

        lines.append("")
        lines.append(f"Estimated processing time: {self.cost_estimate.label}")
        if self.overview_needed:
            lines.append("Overview documents will be updated")

        if self.recommendations:
            lines.append("")
            lines.append("Recommendations:")
            lines.extend(f"  - {r}" for r in self.recommendations)
        lines.append("=" * 60)
        return lines

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "total_changes": self.total_changes,
            "tracked_changes": self.tracked_changes,
            "untracked_changes": self.untracked_changes,
            "affected_modules": [m.to_dict() for m in self.affected_modules],
            "overview_needed": self.overview_needed,
            "cost_estimate": {
                "seconds": self.cost_estimate.seconds,
                "label": self.cost_estimate.label,
            },
            "recommendations": list(self.recommendations),
        }


class ChangeAnalyzer:
    """Attributes changes to modules and decides what to regenerate.

    Module grouping is computed from the inventory alone; the change set only
    decides which modules are touched. Paths whose module is not in the
    inventory (e.g. a deleted directory) still get an impact record so the
    deletion is reported.

    Example:
        >>> analyzer = ChangeAnalyzer(AnalysisConfig())
        >>> analysis = analyzer.analyze(ChangeSet(modified=["src/utils/a.ts"]), inventory)
        >>> analysis.affected_modules[0].impact
        <ImpactLevel.LOW: 'low'>
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        change_filter: ChangeFilter | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Impact thresholds and cost model.
            change_filter: Optional filter applied before attribution.
        """
        self.config = config or AnalysisConfig()
        self.change_filter = change_filter

    def analyze(self, changes: ChangeSet, inventory: FileInventory) -> ChangeAnalysis:
        """Analyze a change set against the current inventory.

        Args:
            changes: Raw change set.
            inventory: Current file inventory.

        Returns:
            The ChangeAnalysis.
        """
        total = len(changes.all_paths())
        dropped: list[str] = []
        if self.change_filter is not None:
            outcome = self.change_filter.apply(changes)
            changes, dropped = outcome.kept, outcome.dropped

        modules = group_modules(inventory)
        impacts = self._attribute(changes, modules)
        for impact in impacts:
            impact.classify(self.config)
        # sorted() is stable, so equal levels keep first-seen order
        impacts = sorted(impacts, key=lambda m: m.impact.rank, reverse=True)

        overview_needed = self._overview_needed(impacts, changes)
        analysis = ChangeAnalysis(
            changes=changes,
            affected_modules=impacts,
            overview_needed=overview_needed,
            cost_estimate=self._estimate(impacts, overview_needed),
            recommendations=self._recommend(impacts, changes),
            total_changes=total,
            tracked_changes=len(changes.all_paths()),
            untracked_changes=len(dropped),
        )

        logger.info(
            "Analyzed changes",
            modules=len(impacts),
            overview_needed=overview_needed,
            estimate=analysis.cost_estimate.label,
        )
        return analysis

    def _attribute(self, changes: ChangeSet, modules: dict[str, Module]) -> list[ModuleImpact]:
        by_key: dict[str, ModuleImpact] = {}

        def _impact_for(path: str) -> ModuleImpact:
            key = module_key_for_path(path)
            if key not in by_key:
                module = modules.get(key)
                by_key[key] = ModuleImpact(
                    key=key,
                    name=module.name if module else format_module_name(key),
                    description=module.description if module else describe_module(key, 0),
                )
            return by_key[key]

        for category, path in changes.iter_categorized():
            if category != "renamed":
                _impact_for(path).attribute(category, path)
        for rename in changes.renamed:
            for path in (rename.from_path, rename.to_path):
                _impact_for(path).attribute("renamed", path, rename)

        return list(by_key.values())

    @staticmethod
    def _overview_needed(impacts: list[ModuleImpact], changes: ChangeSet) -> bool:
        return (
            any(m.impact is ImpactLevel.HIGH for m in impacts)
            or len(impacts) > 1
            or changes.has_structural_changes
        )

    def _estimate(self, impacts: list[ModuleImpact], overview_needed: bool) -> CostEstimate:
        scale = {ImpactLevel.HIGH: 1.5, ImpactLevel.MEDIUM: 1.0, ImpactLevel.LOW: 0.7}
        seconds = sum(self.config.base_seconds_per_module * scale[m.impact] for m in impacts)
        if overview_needed and impacts:
            seconds += self.config.overview_seconds
        return CostEstimate.from_seconds(seconds)

    def _recommend(self, impacts: list[ModuleImpact], changes: ChangeSet) -> list[str]:
        if not impacts:
            return [NO_UPDATES_NEEDED]

        recommendations = []
        if any(m.impact is ImpactLevel.HIGH for m in impacts):
            recommendations.append(HIGH_IMPACT_ADVICE)
        if changes.deleted:
            recommendations.append(DELETIONS_ADVICE)
        if changes.renamed:
            recommendations.append(RENAMES_ADVICE)
        if len(impacts) > self.config.many_modules_threshold:
            recommendations.append(MANY_MODULES_ADVICE)
        if any(m.key == TYPES_MODULE_KEY for m in impacts):
            recommendations.append(TYPES_ADVICE)
        return recommendations
