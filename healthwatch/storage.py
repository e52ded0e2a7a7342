"""JSON file storage for monitored targets and their statistics."""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from .models import TargetRecord

logger = logging.getLogger(__name__)

# Top-level key of the stored document.
DOCUMENT_KEY = "healthChecks"


class StorageError(Exception):
    """Raised when a storage operation fails."""

    pass


class TargetStore:
    """Whole-document JSON store keyed by target name.

    Every ``load`` and ``save`` holds the store lock, and so does the whole
    read-modify-write of the registration helpers, so concurrent callers are
    serialized rather than rejected. The lock is re-entrant because those
    helpers call ``load`` and ``save`` themselves.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def init(self) -> None:
        """Create the storage file and its directory if they don't exist.

        Raises:
            StorageError: If the directory or file cannot be created.
        """
        with self._lock:
            if self.path.exists():
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("{}", encoding="utf-8")
            except OSError as e:
                raise StorageError(f"Failed to create storage file {self.path}: {e}")
            logger.info("Created storage file %s", self.path)

    def load(self) -> dict[str, TargetRecord]:
        """Read all target records.

        Fails open: an unreadable or malformed document is logged and an
        empty collection is returned. A single malformed record is skipped.
        """
        with self._lock:
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
            except OSError as e:
                logger.error("Failed to open %s: %s", self.path, e)
                return {}
            except json.JSONDecodeError as e:
                logger.error("Failed to decode %s: %s", self.path, e)
                return {}

        if not isinstance(data, dict):
            logger.error("Failed to decode %s: top level is not an object", self.path)
            return {}

        raw_checks = data.get(DOCUMENT_KEY) or {}
        if not isinstance(raw_checks, dict):
            logger.error("Failed to decode %s: '%s' is not an object", self.path, DOCUMENT_KEY)
            return {}

        records: dict[str, TargetRecord] = {}
        for key, raw in raw_checks.items():
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed target entry %r", key)
                continue
            try:
                record = TargetRecord.from_dict(raw, name=key)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed target entry %r: %s", key, e)
                continue
            records[record.name] = record
        return records

    def save(self, records: dict[str, TargetRecord]) -> None:
        """Overwrite the stored document with the given records.

        The document is written to a temporary file in the same directory
        and moved into place, so readers never see a partial write.

        Raises:
            StorageError: If the document cannot be written.
        """
        document = {DOCUMENT_KEY: {name: record.to_dict() for name, record in records.items()}}

        with self._lock:
            tmp_name: str | None = None
            try:
                fd, tmp_name = tempfile.mkstemp(prefix=".checks-", suffix=".json", dir=self.path.parent)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2)
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise StorageError(f"Failed to save {self.path}: {e}")

    def add(self, record: TargetRecord) -> None:
        """Register a new target.

        Raises:
            StorageError: If a target with the same name exists or saving fails.
        """
        with self._lock:
            records = self.load()
            if record.name in records:
                raise StorageError(f"Server {record.name} already exists")
            records[record.name] = record
            self.save(records)

    def remove(self, name: str) -> None:
        """Delete a target by name.

        Raises:
            StorageError: If the target does not exist or saving fails.
        """
        with self._lock:
            records = self.load()
            if name not in records:
                raise StorageError(f"Server {name} not exists")
            del records[name]
            self.save(records)

    def remove_all(self) -> None:
        """Delete every target."""
        with self._lock:
            self.save({})

    def update(self, name: str, update_fn: Callable[[TargetRecord], None]) -> TargetRecord:
        """Apply ``update_fn`` to one stored record and save it.

        Returns:
            The updated record.

        Raises:
            StorageError: If the target does not exist or saving fails.
        """
        with self._lock:
            records = self.load()
            record = records.get(name)
            if record is None:
                raise StorageError(f"Server {name} not found")
            update_fn(record)
            self.save(records)
            return record
