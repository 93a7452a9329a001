"""
JSON File Storage Implementation

DESIGN DECISION: A single local JSON document is used as the storage backend
because:
1. The whole ledger of one person fits comfortably in memory
2. No database setup required
3. The file doubles as a human-readable backup

TRADEOFFS:
- Every save rewrites the whole document (fine for personal volumes)
- One writer only; no cross-process locking

Writes go to a temporary file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves the previous document intact.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.errors import PersistenceError
from fintrack.log import get_logger
from fintrack.models.records import LedgerSnapshot
from fintrack.services.storage.interface import LedgerStorageInterface


logger = get_logger(__name__)


class JsonFileStorage(LedgerStorageInterface):
    """
    Stores the ledger snapshot as one JSON document on local disk.
    """

    def __init__(self, path: Path, write_attempts: int = 3):
        self._path = Path(path)
        self._write_attempts = write_attempts

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[LedgerSnapshot]:
        """Read and validate the stored document."""
        if not self._path.exists():
            return None
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {self._path}: {e}") from e

        if not raw.strip():
            return None

        try:
            return LedgerSnapshot.model_validate_json(raw)
        except PydanticValidationError as e:
            raise PersistenceError(
                f"Stored ledger at {self._path} is corrupt: {e.error_count()} invalid fields"
            ) from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Write the snapshot atomically, retrying transient I/O errors."""
        payload = snapshot.model_dump_json(indent=2)
        retrying = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._write_atomic(payload)
        except OSError as e:
            logger.error("storage_write_failed", path=str(self._path), error=str(e))
            raise PersistenceError(f"Failed to write {self._path}: {e}") from e

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {self._path}: {e}") from e

    def _write_atomic(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
