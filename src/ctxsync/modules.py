"""Directory-based module grouping.

Module membership is a pure function of a file's relative path: the first
path segment, or the second one for files nested under ``src/``. Files at
the repository root form the "Root Files" module. Modules are recomputed
from the inventory on every run and never persisted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog

from ctxsync.inventory import FileInfo, FileInventory

logger = structlog.get_logger()

ROOT_MODULE_KEY = "Root Files"
SOURCE_ROOT = "src"

MODULE_DESCRIPTIONS = {
    "generators": "Code generation utilities for documentation and agents",
    "services": "External service integrations and API clients",
    "utils": "Utility functions and helper modules",
    "types": "Type definitions and interfaces",
    ROOT_MODULE_KEY: "Main configuration and entry point files",
}


def module_key_for_path(relative_path: str) -> str:
    """Return the module key owning a repository-relative path.

    Example:
        >>> module_key_for_path("src/generators/x.ts")
        'generators'
        >>> module_key_for_path("docs/guide.md")
        'docs'
        >>> module_key_for_path("README.md")
        'Root Files'
    """
    parts = [p for p in relative_path.replace("\\", "/").split("/") if p]
    if len(parts) <= 1:
        return ROOT_MODULE_KEY
    if parts[0] == SOURCE_ROOT and len(parts) > 2:
        return parts[1]
    return parts[0]


def format_module_name(key: str) -> str:
    """Human display name: split on ``-``/``_`` and capitalize each word."""
    words = [w for w in re.split(r"[-_]", key) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words) or key


def slugify(text: str) -> str:
    """Lowercase, whitespace to hyphens, drop anything but word chars and hyphens."""
    slug = re.sub(r"\s+", "-", text.strip().lower())
    return re.sub(r"[^\w-]", "", slug)


def describe_module(key: str, file_count: int) -> str:
    """Static description for well-known keys, else a derived one."""
    if key in MODULE_DESCRIPTIONS:
        return MODULE_DESCRIPTIONS[key]
    return f"{format_module_name(key)} module with {file_count} files"


@dataclass
class Module:
    """A logical group of files documented by one artifact.

    Attributes:
        key: Grouping key derived from paths (e.g. "generators").
        name: Display name (e.g. "Generators").
        description: Human description.
        files: Files in the module at grouping time.
    """

    key: str
    name: str
    description: str
    files: list[FileInfo] = field(default_factory=list)

    @property
    def slug(self) -> str:
        """Artifact file stem."""
        return slugify(self.name)

    @property
    def file_paths(self) -> list[str]:
        """Relative paths of the module's files."""
        return [f.relative_path for f in self.files]


def group_modules(inventory: FileInventory) -> dict[str, Module]:
    """Group the inventory's text files into modules.

    Args:
        inventory: The current file inventory.

    Returns:
        Modules keyed by module key, ordered by display name.
    """
    groups: dict[str, list[FileInfo]] = {}
    for info in inventory.text_files():
        groups.setdefault(module_key_for_path(info.relative_path), []).append(info)

    modules = [
        Module(
            key=key,
            name=format_module_name(key),
            description=describe_module(key, len(files)),
            files=files,
        )
        for key, files in groups.items()
    ]
    modules.sort(key=lambda m: m.name.lower())
    grouped = {m.key: m for m in modules}
    for slug, keys in slug_collisions(grouped).items():
        logger.warning("Modules share an artifact", slug=slug, modules=keys)
    return grouped


def slug_collisions(modules: dict[str, Module]) -> dict[str, list[str]]:
    """Artifact slugs claimed by more than one module key.

    Keys such as ``foo-bar`` and ``foo_bar`` format to the same display name
    and therefore write the same artifact; the later module overwrites it.
    """
    by_slug: dict[str, list[str]] = {}
    for module in modules.values():
        by_slug.setdefault(module.slug, []).append(module.key)
    return {slug: sorted(keys) for slug, keys in by_slug.items() if len(keys) > 1}


def current_slugs(modules: dict[str, Module]) -> set[str]:
    """Artifact slugs of the given modules."""
    return {m.slug for m in modules.values()}
