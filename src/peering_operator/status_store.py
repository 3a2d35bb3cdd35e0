"""File-backed persistence of reconcile results.

One JSON file per resource holds the last status, the lifecycle marker and
a snapshot of the resource as last reconciled. The snapshot lets a deletion
be completed after the declaring file has been removed.

Writes go to a temporary file that is renamed into place, so a record is
either fully replaced or left untouched.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import NetworkPeering
from .workflow import ReconcileResult

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
KEY_SEPARATOR = "__"


class StatusStoreError(Exception):
    """Raised when a status record cannot be read or written."""

    pass


class StatusRecord(BaseModel):
    """Persisted state of one resource."""

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    resource: NetworkPeering
    lifecycle_marker: bool = Field(False, alias="lifecycleMarker")
    outcome: str = ""
    reason: str = ""
    message: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC), alias="updatedAt")

    @property
    def key(self) -> str:
        return self.resource.metadata.key

    @classmethod
    def from_result(cls, resource: NetworkPeering, result: ReconcileResult) -> StatusRecord:
        return cls(
            resource=resource.model_copy(update={"status": result.status}),
            lifecycle_marker=result.lifecycle_marker,
            outcome=result.outcome.value,
            reason=result.reason,
            message=result.message,
        )


def _filename(key: str) -> str:
    namespace, _, name = key.partition("/")
    return f"{namespace}{KEY_SEPARATOR}{name}{RECORD_SUFFIX}"


class StatusStore:
    """Directory of status records keyed by ``namespace/name``."""

    def __init__(self, state_dir: Path) -> None:
        self._dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / _filename(key)

    def get(self, key: str) -> StatusRecord | None:
        """Return the record for a key, or None if there is none.

        Raises:
            StatusStoreError: If the record exists but cannot be read.
        """
        path = self._path(key)
        if not path.exists():
            return None
        return self._read(path)

    def _read(self, path: Path) -> StatusRecord:
        try:
            if path.stat().st_size > MAX_STATE_FILE_SIZE_BYTES:
                raise StatusStoreError(
                    f"State file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
                )
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StatusStoreError(f"Failed to read state file {path}: {e}") from e
        try:
            return StatusRecord.model_validate_json(content)
        except ValidationError as e:
            raise StatusStoreError(f"Corrupt state file {path}: {e}") from e

    def save(self, record: StatusRecord) -> None:
        """Atomically replace the record for its key.

        Raises:
            StatusStoreError: If the record cannot be written.
        """
        path = self._path(record.key)
        payload = record.model_dump_json(by_alias=True, indent=2)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=RECORD_SUFFIX)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StatusStoreError(f"Failed to write state file {path}: {e}") from e
        logger.debug("Saved status record", extra={"resource": record.key, "path": str(path)})

    def delete(self, key: str) -> bool:
        """Remove the record for a key.

        Returns:
            True if a record was removed.
        """
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StatusStoreError(f"Failed to delete state file {path}: {e}") from e
        logger.info("Deleted status record", extra={"resource": key})
        return True

    def records(self) -> list[StatusRecord]:
        """Return all readable records; unreadable ones are logged and skipped."""
        if not self._dir.exists():
            return []
        records = []
        for path in sorted(self._dir.glob(f"*{RECORD_SUFFIX}")):
            if path.name.startswith(".tmp-"):
                continue
            try:
                records.append(self._read(path))
            except StatusStoreError as e:
                logger.error("Skipping unreadable state file", extra={"error": str(e)})
        return records
