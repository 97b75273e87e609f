"""
JSON File Storage Implementation

Each key is one file, <data_dir>/<key>.json. Writes go to a temporary
file first and are moved into place, so a crash mid-write leaves the
previous snapshot intact.

The audit log lives next to the snapshots as JSON lines, one event per
line, appended and never rewritten.

Transient OS errors (locked files, flaky network mounts) are retried a
few times before surfacing as StorageError.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bankflow.config import get_settings
from bankflow.models.audit import AuditEvent, AuditEventType
from bankflow.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StorageConnectionError,
    StorageError,
)

logger = structlog.get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

_retry_os_errors = retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    File-per-key snapshot storage.

    The data directory is created on first use.
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        if data_dir is None:
            data_dir = get_settings().storage.data_path
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def ensure_directory(self) -> None:
        """Create the data directory or fail with StorageConnectionError."""
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageConnectionError(
                f"Cannot create data directory {self._data_dir}: {e}"
            ) from e

    @_retry_os_errors
    def _read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @_retry_os_errors
    def _write_text(self, path: Path, blob: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self._data_dir, prefix=f".{path.stem}-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return self._read_text(path)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def write(self, key: str, blob: str) -> None:
        path = self._path(key)
        self.ensure_directory()
        try:
            self._write_text(path, blob)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
        return True


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON event per line.

    Lines that no longer parse are skipped with a warning when reading;
    the file itself is never rewritten.
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        file_name: Optional[str] = None,
    ):
        settings = get_settings().storage
        self._data_dir = Path(data_dir) if data_dir is not None else settings.data_path
        self._path = self._data_dir / (file_name or settings.audit_file)

    @property
    def path(self) -> Path:
        return self._path

    @_retry_os_errors
    def _append_line(self, line: str) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    @_retry_os_errors
    def _read_lines(self) -> list[str]:
        if not self._path.exists():
            return []
        return self._path.read_text(encoding="utf-8").splitlines()

    def _load_events(self) -> list[AuditEvent]:
        try:
            lines = self._read_lines()
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e

        events = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValidationError as e:
                logger.warning(
                    "audit_line_skipped",
                    path=str(self._path),
                    line=number,
                    error=str(e),
                )
        return events

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._append_line(event.model_dump_json())
        except OSError as e:
            raise StorageError(f"Failed to append to {self._path}: {e}") from e
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._load_events()))[:limit]

    def get_events_by_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self._load_events() if e.event_type == event_type]
