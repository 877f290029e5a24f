"""Persistence of the last fully processed revision."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class ReferenceRecord:
    """Contents of the sidecar record.

    Attributes:
        last_revision: The last fully processed revision identifier.
        updated_at: When the record was written.
    """

    last_revision: str
    updated_at: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"lastRevision": self.last_revision, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReferenceRecord | None:
        """Create from dictionary, accepting the legacy ``lastCommit`` key."""
        revision = data.get("lastRevision") or data.get("lastCommit")
        if not isinstance(revision, str) or not revision.strip():
            return None
        return cls(
            last_revision=revision.strip(),
            updated_at=data.get("updatedAt", ""),
        )


class ReferenceStore:
    """Reads and writes the reference pointer record.

    An absent or unreadable record means "never processed". Writes are
    best effort: a failed write only makes the next run reprocess more than
    necessary, so ``save`` and ``clear`` report failure through their return
    value and a warning instead of raising.

    Example:
        >>> store = ReferenceStore(Path("/project/context-log.json"))
        >>> store.save("abc123")
        True
        >>> store.load()
        'abc123'
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON record.
        """
        self.path = path

    def read_record(self) -> ReferenceRecord | None:
        """Read the full record, or None if absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(
                "Ignoring unreadable reference record", path=str(self.path), error=str(e)
            )
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed reference record", path=str(self.path))
            return None
        return ReferenceRecord.from_dict(data)

    def load(self) -> str | None:
        """Return the last processed revision, or None."""
        record = self.read_record()
        return record.last_revision if record else None

    def save(self, revision: str) -> bool:
        """Persist a revision as the last processed one.

        Returns:
            True if the record was written.
        """
        record = ReferenceRecord(last_revision=revision)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(record.to_dict(), indent=2) + "\n")
        except OSError as e:
            logger.warning(
                "Could not save reference record", path=str(self.path), error=str(e)
            )
            return False
        logger.debug("Saved reference record", revision=revision[:8])
        return True

    def clear(self) -> bool:
        """Delete the record.

        Returns:
            True if no record remains afterwards.
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(
                "Could not clear reference record", path=str(self.path), error=str(e)
            )
            return False
        return True
