"""YAML front matter helpers for generated documents."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DELIMITER = "---"
UNFILLED = "unfilled"
# Front matter blocks longer than this are not worth scanning for status.
MAX_HEADER_LINES = 40


def split_front_matter(content: str) -> tuple[dict[str, Any] | None, str]:
    """Split a document into its front matter mapping and body.

    Returns ``(None, content)`` when there is no well-formed block.
    """
    lines = content.split("\n")
    if not lines or lines[0].strip() != DELIMITER:
        return None, content

    end = next(
        (i for i, line in enumerate(lines[1:], start=1) if line.strip() == DELIMITER),
        None,
    )
    if end is None:
        return None, content

    try:
        data = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError:
        return None, content
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, content

    body = "\n".join(lines[end + 1 :]).lstrip("\n")
    return data, body


def render_front_matter(data: dict[str, Any]) -> str:
    """Render a mapping as a front matter block followed by a blank line."""
    dumped = yaml.safe_dump(
        {k: v for k, v in data.items() if v is not None},
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n\n"


def read_front_matter(path: Path) -> dict[str, Any] | None:
    """Read only the leading front matter block of a file.

    Raises:
        OSError: If the file cannot be read.
    """
    header: list[str] = []
    with path.open(encoding="utf-8", errors="replace") as handle:
        for i, line in enumerate(handle):
            if i == 0 and line.strip() != DELIMITER:
                return None
            header.append(line.rstrip("\n"))
            if i > 0 and line.strip() == DELIMITER:
                break
            if i >= MAX_HEADER_LINES:
                return None
    data, _ = split_front_matter("\n".join(header))
    return data


def needs_fill(path: Path) -> bool:
    """True if the document is marked ``status: unfilled``."""
    data = read_front_matter(path)
    return bool(data) and str(data.get("status", "")).strip().lower() == UNFILLED
