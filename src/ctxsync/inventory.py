"""File inventory of the tracked repository."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog

from ctxsync.paths import ContextPaths

logger = structlog.get_logger()

TEXT_EXTENSIONS = frozenset(
    {
        ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".h",
        ".css", ".scss", ".sass", ".html", ".xml", ".json", ".yaml", ".yml",
        ".md", ".txt", ".sql", ".sh", ".bat", ".ps1", ".php", ".rb", ".go",
        ".rs", ".swift", ".kt", ".scala", ".r", ".m", ".pl", ".lua", ".vim",
        ".toml", ".cfg", ".ini", ".dockerfile", ".gitignore", ".env",
    }
)


def extension_of(relative_path: str) -> str:
    """Lowercased extension, treating dotfiles like ``.gitignore`` as one."""
    name = PurePosixPath(relative_path).name
    suffix = PurePosixPath(name).suffix.lower()
    if not suffix and name.startswith("."):
        return name.lower()
    return suffix


def is_text_file(relative_path: str) -> bool:
    """Classify a path as text by extension; extensionless files count as text."""
    ext = extension_of(relative_path)
    return not ext or ext in TEXT_EXTENSIONS


def matches_pattern(relative_path: str, pattern: str) -> bool:
    """Match a path against an fnmatch pattern.

    The pattern is tried against the full path, the basename and each path
    component.
    """
    normalized = relative_path.replace("\\", "/")
    if fnmatch.fnmatch(normalized, pattern):
        return True
    if fnmatch.fnmatch(PurePosixPath(normalized).name, pattern):
        return True
    return any(fnmatch.fnmatch(part, pattern) for part in normalized.split("/"))


@dataclass(frozen=True)
class FileInfo:
    """A tracked file.

    Attributes:
        relative_path: Repository-relative POSIX path.
        size: Size in bytes.
    """

    relative_path: str
    size: int = 0

    @property
    def extension(self) -> str:
        """Lowercased extension."""
        return extension_of(self.relative_path)

    @property
    def is_text(self) -> bool:
        """True if the file is text-classified."""
        return is_text_file(self.relative_path)


@dataclass
class FileInventory:
    """Snapshot of the files ctxsync reasons about.

    Attributes:
        root: Repository root.
        files: Tracked files, sorted by path.
    """

    root: Path
    files: list[FileInfo] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        """Number of files."""
        return len(self.files)

    @property
    def total_size(self) -> int:
        """Sum of file sizes in bytes."""
        return sum(f.size for f in self.files)

    @property
    def directories(self) -> list[str]:
        """Every directory that contains at least one file."""
        dirs: set[str] = set()
        for info in self.files:
            parent = PurePosixPath(info.relative_path).parent
            while str(parent) != ".":
                dirs.add(str(parent))
                parent = parent.parent
        return sorted(dirs)

    def text_files(self) -> list[FileInfo]:
        """Files that take part in module grouping."""
        return [f for f in self.files if f.is_text]

    def extension_counts(self, limit: int = 10) -> list[tuple[str, int]]:
        """Most common extensions with their counts, descending."""
        counts: dict[str, int] = {}
        for info in self.files:
            ext = info.extension or "no-extension"
            counts[ext] = counts.get(ext, 0) + 1
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]

    @classmethod
    def from_paths(cls, root: Path, paths: list[str], sizes: dict[str, int] | None = None) -> FileInventory:
        """Build an inventory from relative paths without touching the disk."""
        sizes = sizes or {}
        files = [FileInfo(relative_path=p, size=sizes.get(p, 0)) for p in sorted(set(paths))]
        return cls(root=root, files=files)


def scan_inventory(
    paths: ContextPaths,
    tracked: set[str],
    *,
    exclude_patterns: list[str] | None = None,
) -> FileInventory:
    """Build the inventory from tracked files that exist on disk.

    ctxsync's own artifacts and work files, and paths matching any exclude
    pattern, are left out.

    Args:
        paths: Artifact layout for the repository.
        tracked: Paths git currently tracks.
        exclude_patterns: fnmatch patterns to skip.

    Returns:
        The file inventory.
    """
    patterns = exclude_patterns or []
    files: list[FileInfo] = []
    skipped = 0

    for relative in sorted(tracked):
        if paths.is_internal(relative) or any(matches_pattern(relative, p) for p in patterns):
            skipped += 1
            continue
        full_path = paths.repo_root / relative
        try:
            stat = full_path.stat()
        except OSError:
            # Tracked but removed from the work tree.
            skipped += 1
            continue
        if not full_path.is_file():
            skipped += 1
            continue
        files.append(FileInfo(relative_path=relative, size=stat.st_size))

    logger.debug("Scanned inventory", files=len(files), skipped=skipped)
    return FileInventory(root=paths.repo_root, files=files)
