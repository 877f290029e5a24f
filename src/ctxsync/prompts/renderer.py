"""Prompt and artifact template renderer using Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2
import structlog

logger = structlog.get_logger()

# Template directory is relative to this module
TEMPLATES_DIR = Path(__file__).parent / "templates"


def format_bytes(size: int) -> str:
    """Human-readable byte count (e.g. ``1.5 KB``)."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class PromptRenderer:
    """Renders Markdown templates with context.

    Templates cover both the prompts sent to the LLM and the deterministic
    artifacts (module wrapper, overview, index).

    Example:
        >>> renderer = PromptRenderer()
        >>> "Project Overview" in renderer.render("overview", **context)
        True
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        """Initialize the renderer.

        Args:
            templates_dir: Directory containing templates.
                          Defaults to built-in templates.
        """
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.templates_dir)),
            autoescape=False,  # Markdown output
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=jinja2.StrictUndefined,
        )
        self.env.filters["format_bytes"] = format_bytes

    def render(self, template_name: str, **context: Any) -> str:
        """Render a template with the given context.

        Args:
            template_name: Name of the template (without .md extension).
            **context: Variables to pass to the template.

        Returns:
            Rendered template content.

        Raises:
            jinja2.TemplateNotFound: If template doesn't exist.
            jinja2.UndefinedError: If required variable is missing.
        """
        log = logger.bind(template=template_name)
        log.debug("Rendering template")

        template = self.env.get_template(f"{template_name}.md")
        rendered = template.render(**context)

        log.debug("Template rendered", length=len(rendered))
        return rendered

    def render_to_file(
        self,
        template_name: str,
        out_path: Path,
        **context: Any,
    ) -> None:
        """Render a template and write to file."""
        content = self.render(template_name, **context)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(content, encoding="utf-8", errors="surrogateescape")
        logger.debug("Wrote rendered template", path=str(out_path))

    def template_exists(self, template_name: str) -> bool:
        """Check if a template exists."""
        return (self.templates_dir / f"{template_name}.md").exists()
