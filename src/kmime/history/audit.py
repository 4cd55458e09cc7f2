"""Append-only JSON log of the sessions kmime has started."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from kmime.errors import AuditLogError

logger = logging.getLogger(__name__)


class SessionRecord(BaseModel):
    """One started session. Never modified once appended."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    new_pod_name: str
    source_pod: str
    namespace: str
    user: str
    command: list[str]
    prefix: str | None = None
    suffix: str | None = None
    labels: dict[str, str] | None = None
    env_file: str | None = None


_RECORDS = TypeAdapter(list[SessionRecord])


class AuditLog:
    """Session records stored as one JSON array in a single file.

    Every append reads the whole file and rewrites it, so only one writer may
    use a given file at a time; callers serialize access.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> list[SessionRecord]:
        """Return every record in append order; a missing or empty file has none.

        Raises:
            OSError: If the file exists but cannot be read.
            AuditLogError: If the file is not a valid record list.
        """
        if not self.path.exists():
            return []
        data = self.path.read_bytes()
        if not data.strip():
            return []
        try:
            return _RECORDS.validate_json(data)
        except ValidationError as e:
            raise AuditLogError(f"Could not parse log file {self.path}: {e}") from e

    def append(self, record: SessionRecord) -> None:
        """Add ``record`` to the end of the log.

        Raises:
            OSError: If the file cannot be read or written.
            AuditLogError: If the existing file is corrupt.
        """
        records = self.read()
        records.append(record)
        self.path.write_bytes(_RECORDS.dump_json(records, indent=2, exclude_none=True))
        logger.debug("Appended session %s to %s", record.new_pod_name, self.path)

