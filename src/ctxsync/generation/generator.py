"""Content generation for module, overview and index artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import structlog

from ctxsync.config import CtxSyncConfig
from ctxsync.exceptions import GenerationError
from ctxsync.executors.base import Executor, LogPaths
from ctxsync.frontmatter import render_front_matter, split_front_matter
from ctxsync.inventory import FileInventory
from ctxsync.modules import Module, group_modules
from ctxsync.paths import ContextPaths
from ctxsync.prompts.renderer import PromptRenderer
from ctxsync.vcs.git_source import GitChangeSource

logger = structlog.get_logger()


class ArtifactGenerator(Protocol):
    """Produces artifact bodies. May be slow and may fail."""

    def generate_module_artifact(self, module: Module) -> str:
        """Full content of a module artifact."""
        ...

    def generate_overview_artifact(self, inventory: FileInventory) -> str:
        """Full content of the project overview."""
        ...

    def generate_index_artifact(self, inventory: FileInventory) -> str:
        """Full content of the documentation index."""
        ...


@dataclass
class FileSample:
    """Leading content of a module file included in the prompt."""

    path: str
    content: str


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


class ExecutorArtifactGenerator:
    """Generates module documentation through an LLM CLI executor.

    Module bodies come from the executor; the surrounding front matter and
    file list, the overview and the index are rendered from templates.

    Example:
        >>> generator = ExecutorArtifactGenerator(
        ...     executor=FakeExecutor(), paths=paths, config=config
        ... )
        >>> generator.generate_module_artifact(module).startswith("---")
        True
    """

    def __init__(
        self,
        *,
        executor: Executor,
        paths: ContextPaths,
        config: CtxSyncConfig | None = None,
        renderer: PromptRenderer | None = None,
        source: GitChangeSource | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            executor: Executor that answers module prompts.
            paths: Artifact and work dir layout.
            config: Sampling limits and engine timeout.
            renderer: Template renderer.
            source: Change source for branch, revision and file history.
        """
        self.executor = executor
        self.paths = paths
        self.config = config or CtxSyncConfig()
        self.renderer = renderer or PromptRenderer()
        self.source = source

    def _samples(self, module: Module) -> list[FileSample]:
        limit = self.config.context.max_sample_chars
        samples = []
        for info in module.files[: self.config.context.max_sample_files]:
            try:
                with (self.paths.repo_root / info.relative_path).open(
                    encoding="utf-8", errors="replace"
                ) as handle:
                    content = handle.read(limit + 1)
            except OSError as e:
                content = f"[Error reading file: {e}]"
            else:
                if len(content) > limit:
                    content = content[:limit] + "..."
            samples.append(FileSample(path=info.relative_path, content=content))
        return samples

    def _last_modified(self, module: Module) -> str:
        if self.source is not None and module.files:
            paths = [f.relative_path for f in module.files]
            history = self.source.file_history(*paths, limit=1)
            if history:
                return history[0].date
        return _now()

    def _branch(self) -> str:
        return self.source.branch_name() if self.source is not None else "unknown"

    def _revision(self) -> str | None:
        if self.source is None:
            return None
        return self.source.current_revision()

    def generate_module_artifact(self, module: Module) -> str:
        """Ask the executor for a module body and wrap it.

        Raises:
            GenerationError: If the executor fails or returns nothing.
            ExecutorError: If the executor cannot be started.
        """
        name = f"module_{module.slug}"
        log = logger.bind(module=module.name)

        prompt_path = self.paths.prompt_path(name)
        self.renderer.render_to_file(
            "module_prompt", prompt_path, module=module, samples=self._samples(module)
        )
        stdout, stderr = self.paths.log_paths(name)
        result = self.executor.run_text(
            cwd=self.paths.repo_root,
            prompt_path=prompt_path,
            out_path=self.paths.output_path(name),
            logs=LogPaths(stdout=stdout, stderr=stderr),
            timeout=self.config.engine.timeout,
        )
        if result.failed:
            msg = f"{self.executor.name} failed for module {module.name}: {result.failure_summary()}"
            raise GenerationError(msg, module=module.name)

        data, body = split_front_matter(result.read_output().strip())
        if data is not None:
            log.debug("Discarded front matter returned by executor")
        body = body.strip()
        if not body:
            msg = f"{self.executor.name} returned no content for module {module.name}"
            raise GenerationError(msg, module=module.name)

        front_matter = render_front_matter(
            {
                "module": module.name,
                "files": len(module.files),
                "last_modified": self._last_modified(module),
                "generated": _now(),
            }
        )
        log.debug("Generated module artifact", length=len(body))
        return self.renderer.render("module", front_matter=front_matter, module=module, body=body)

    def generate_overview_artifact(self, inventory: FileInventory) -> str:
        """Render the overview from the full current inventory."""
        return self.renderer.render(
            "overview",
            inventory=inventory,
            modules=list(group_modules(inventory).values()),
            extensions=inventory.extension_counts(limit=10),
            branch=self._branch(),
            revision=self._revision(),
            generated_at=_now(),
        )

    def generate_index_artifact(self, inventory: FileInventory) -> str:
        """Render the index listing the overview and every module artifact."""
        return self.renderer.render(
            "index",
            modules=list(group_modules(inventory).values()),
            branch=self._branch(),
            revision=self._revision(),
            generated_at=_now(),
        )
