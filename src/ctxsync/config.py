"""Configuration schema for ctxsync."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ctxsync.exceptions import ConfigError

CONFIG_FILENAME = "ctxsync.yaml"


class EngineType(str, Enum):
    """Supported content-generation engines."""

    CODEX = "codex"
    GEMINI = "gemini"
    FAKE = "fake"


class EngineConfig(BaseModel):
    """Configuration for the LLM CLI that writes module documentation.

    Attributes:
        type: The engine type.
        binary: Path or name of the CLI binary.
        extra_args: Additional arguments to pass to the CLI.
        timeout: Timeout in seconds for a single generation call.
        model: Optional model override passed to the CLI.
    """

    type: EngineType = EngineType.CODEX
    binary: str = ""
    extra_args: list[str] = Field(default_factory=list)
    timeout: int = Field(default=600, ge=30)
    model: str | None = None

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.binary:
            defaults = {
                EngineType.CODEX: "codex",
                EngineType.GEMINI: "gemini",
                EngineType.FAKE: "",
            }
            object.__setattr__(self, "binary", defaults.get(self.type, ""))


class ContextConfig(BaseModel):
    """Where artifacts live and what counts as source for staleness checks.

    Attributes:
        output_dir: Artifact root relative to the repository.
        source_dirs: Directories scanned for the newest source mtime.
        source_extensions: File extensions considered source code.
        ignore_dirs: Directory names skipped while scanning source.
        mtime_tolerance_seconds: Source must be newer than artifacts by more
            than this before the corpus counts as outdated.
        max_sample_files: Files per module whose content is sent to the LLM.
        max_sample_chars: Characters per sampled file.
    """

    output_dir: str = ".context"
    source_dirs: list[str] = Field(
        default_factory=lambda: ["src", "lib", "app", "packages"]
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: [
            ".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".rs", ".java", ".rb",
        ]
    )
    ignore_dirs: list[str] = Field(
        default_factory=lambda: ["node_modules", "dist", ".git"]
    )
    mtime_tolerance_seconds: float = Field(default=1.0, ge=0)
    max_sample_files: int = Field(default=10, ge=1)
    max_sample_chars: int = Field(default=1000, ge=100)


class GitConfig(BaseModel):
    """Git-related configuration.

    Attributes:
        reference_file: Repository-relative path of the reference record.
    """

    reference_file: str = "context-log.json"


class AnalysisConfig(BaseModel):
    """Heuristics used by the change analyzer.

    Attributes:
        high_impact_files: Affected files at which a module is high impact.
        medium_impact_files: Affected files at which a module is medium impact.
        base_seconds_per_module: Estimated generation time per module.
        overview_seconds: Extra estimated time when the overview is rebuilt.
        many_modules_threshold: Module count above which staging is advised.
    """

    high_impact_files: int = Field(default=5, ge=2)
    medium_impact_files: int = Field(default=2, ge=1)
    base_seconds_per_module: float = Field(default=15.0, gt=0)
    overview_seconds: float = Field(default=10.0, ge=0)
    many_modules_threshold: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def validate_thresholds(self) -> AnalysisConfig:
        """Ensure the high threshold sits above the medium one."""
        if self.high_impact_files <= self.medium_impact_files:
            msg = "high_impact_files must be greater than medium_impact_files"
            raise ValueError(msg)
        return self


class InventoryConfig(BaseModel):
    """Which tracked files take part in module grouping.

    Attributes:
        exclude_patterns: fnmatch patterns matched against relative paths,
            basenames and path components.
    """

    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["*.lock", "package-lock.json", "*.min.js"]
    )


class CtxSyncConfig(BaseModel):
    """Complete ctxsync configuration.

    Example:
        >>> config = CtxSyncConfig.default(EngineType.FAKE)
        >>> config.context.output_dir
        '.context'
    """

    version: str = "1.0"
    engine: EngineConfig = Field(default_factory=EngineConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    inventory: InventoryConfig = Field(default_factory=InventoryConfig)

    def to_yaml(self) -> str:
        """Serialize the config to YAML."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def save(self, path: Path) -> None:
        """Save the config to a YAML file."""
        path.write_text(self.to_yaml())

    @classmethod
    def from_yaml(cls, yaml_content: str, *, source: Path | None = None) -> CtxSyncConfig:
        """Parse config from YAML content.

        Args:
            yaml_content: YAML string to parse.
            source: Optional file the content came from (for error messages).

        Returns:
            Parsed CtxSyncConfig instance.

        Raises:
            ConfigError: If the YAML is malformed or fails validation.
        """
        try:
            data: Any = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            msg = f"Invalid YAML: {e}"
            raise ConfigError(msg, config_path=source) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "Config YAML must be a mapping"
            raise ConfigError(msg, config_path=source)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = e.errors()
            field = ".".join(str(p) for p in errors[0]["loc"]) if errors else ""
            msg = f"Invalid configuration: {e}"
            raise ConfigError(msg, config_path=source, field=field) from e

    @classmethod
    def load(cls, path: Path) -> CtxSyncConfig:
        """Load config from a YAML file.

        Raises:
            ConfigError: If the file is missing or invalid.
        """
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg, config_path=path)
        return cls.from_yaml(path.read_text(), source=path)

    @classmethod
    def discover(cls, repo_root: Path, path: Path | None = None) -> CtxSyncConfig:
        """Load an explicit config, else ``ctxsync.yaml`` at the repo root, else defaults."""
        if path is not None:
            return cls.load(path)
        default_path = repo_root / CONFIG_FILENAME
        if default_path.exists():
            return cls.load(default_path)
        return cls()

    @classmethod
    def default(cls, engine_type: EngineType = EngineType.CODEX) -> CtxSyncConfig:
        """Create a default configuration for the given engine."""
        return cls(engine=EngineConfig(type=engine_type))
