"""Tests for prompt and artifact template rendering."""

from pathlib import Path

import jinja2
import pytest

from ctxsync.inventory import FileInventory
from ctxsync.modules import group_modules
from ctxsync.prompts.renderer import PromptRenderer, format_bytes


@pytest.fixture
def inventory(tmp_path: Path) -> FileInventory:
    """Inventory with two modules and root files."""
    return FileInventory.from_paths(
        tmp_path,
        ["src/services/api.ts", "src/services/db.ts", "src/utils/fmt.ts", "README.md"],
        sizes={"src/services/api.ts": 2048, "src/services/db.ts": 512},
    )


class TestFormatBytes:
    """Tests for the format_bytes filter."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (1048576, "1.0 MB")],
    )
    def test_format(self, size: int, expected: str) -> None:
        """Sizes are scaled to the largest fitting unit."""
        assert format_bytes(size) == expected


class TestPromptRenderer:
    """Tests for PromptRenderer."""

    def test_templates_exist(self) -> None:
        """All built-in templates ship with the package."""
        renderer = PromptRenderer()

        for name in ("module_prompt", "module", "overview", "index"):
            assert renderer.template_exists(name)
        assert not renderer.template_exists("nonexistent")

    def test_missing_variable_raises(self) -> None:
        """Strict undefined catches missing context."""
        renderer = PromptRenderer()

        with pytest.raises(jinja2.UndefinedError):
            renderer.render("index", modules=[], branch="main")

    def test_module_prompt(self, inventory: FileInventory) -> None:
        """The prompt names the module and includes samples."""
        module = group_modules(inventory)["services"]
        renderer = PromptRenderer()

        content = renderer.render(
            "module_prompt",
            module=module,
            samples=[{"path": "src/services/api.ts", "content": "export const api = 1;"}],
        )

        assert "**Module**: Services" in content
        assert "src/services/api.ts, src/services/db.ts" in content
        assert "File: src/services/api.ts" in content
        assert "export const api = 1;" in content

    def test_module_artifact(self, inventory: FileInventory) -> None:
        """The module wrapper adds a title and a file list."""
        module = group_modules(inventory)["services"]

        content = PromptRenderer().render(
            "module", front_matter="---\nmodule: Services\n---\n\n", module=module, body="Body.\n"
        )

        assert content.startswith("---\nmodule: Services\n---\n\n# Services\n\nBody.\n")
        assert "- `src/services/api.ts` - 2.0 KB" in content
        assert "- `src/services/db.ts` - 512 B" in content

    def test_overview(self, inventory: FileInventory) -> None:
        """The overview has statistics and a module table."""
        modules = list(group_modules(inventory).values())

        content = PromptRenderer().render(
            "overview",
            inventory=inventory,
            modules=modules,
            extensions=inventory.extension_counts(),
            branch="main",
            revision="abcdef1234567",
            generated_at="2024-01-01T00:00:00+00:00",
        )

        assert "- **Branch**: main" in content
        assert "- **Last Commit**: abcdef1" in content
        assert "- **Total Files**: 4" in content
        assert "- **.ts**: 3 files (75.0%)" in content
        assert "| [Services](./modules/services.md) | 2 |" in content

    def test_index(self, inventory: FileInventory) -> None:
        """The index links every module."""
        modules = list(group_modules(inventory).values())

        content = PromptRenderer().render(
            "index", modules=modules, branch="main", revision=None, generated_at="now"
        )

        assert "- [Utils](./modules/utils.md)" in content
        assert "- [Root Files](./modules/root-files.md)" in content
        assert "**Processed Revision**: None" in content

    def test_render_to_file(self, tmp_path: Path) -> None:
        """Rendering to a file creates parent directories."""
        out = tmp_path / "nested" / "index.md"

        PromptRenderer().render_to_file(
            "index", out, modules=[], branch="main", revision=None, generated_at="now"
        )

        assert "No modules documented yet." in out.read_text()

    def test_custom_templates_dir(self, tmp_path: Path) -> None:
        """A custom directory replaces the built-in templates."""
        (tmp_path / "hello.md").write_text("Hello {{ name }}!\n")

        renderer = PromptRenderer(templates_dir=tmp_path)

        assert renderer.render("hello", name="docs") == "Hello docs!\n"
