"""Local filesystem provider implementation."""

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from qadash.results_store.errors import (
    InitializationError,
    ObjectNotFoundError,
    StorageReadError,
    StorageWriteError,
)
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import LocalStorageConfig
from qadash.results_store.models.test_result import StoredObject, TestResultRecord
from qadash.results_store.naming import is_result_object, with_collision_suffix
from qadash.results_store.providers.base import ObjectEntry, RecordStoreAdapter

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 100


class LocalStorageAdapter(RecordStoreAdapter):
    """Stores each test result as a JSON file in a local directory."""

    name = "local"
    description = "Local File System Storage"

    def __init__(self, config: LocalStorageConfig, request_timeout: float = 30) -> None:
        """Initialize local provider with configuration."""
        super().__init__(request_timeout)
        self.config = config
        self.storage_dir = config.storage_dir

    @property
    def is_cloud(self) -> bool:
        """Local storage is never remote."""
        return False

    async def initialize(self) -> None:
        """Create the storage directory if needed and check it is writable."""
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InitializationError(
                f"Cannot create storage directory {self.storage_dir}: {e}"
            ) from e

        if not os.access(self.storage_dir, os.W_OK):
            raise InitializationError(
                f"Storage directory is not writable: {self.storage_dir}"
            )

        logger.info(f"Local storage initialized at {self.storage_dir}")

    async def _write_object(
        self, object_name: str, record: TestResultRecord, payload: bytes
    ) -> StoredObject:
        """Create the file exclusively, adding a suffix if the name is taken."""
        for attempt in range(MAX_NAME_ATTEMPTS):
            candidate = with_collision_suffix(object_name, attempt)
            path = self.storage_dir / candidate
            try:
                with path.open("xb") as f:
                    f.write(payload)
            except FileExistsError:
                continue
            except OSError as e:
                raise StorageWriteError(
                    f"Failed to store test result locally: {e}"
                ) from e

            return StoredObject(
                object_id=candidate,
                object_name=candidate,
                created_at=datetime.now(UTC),
            )

        raise StorageWriteError(
            f"Could not find a free file name for {object_name} "
            f"after {MAX_NAME_ATTEMPTS} attempts"
        )

    async def _list_objects(self, criteria: FilterCriteria) -> list[ObjectEntry]:
        """List result files; nothing is filtered natively."""
        try:
            paths = sorted(
                p
                for p in self.storage_dir.iterdir()
                if p.is_file() and is_result_object(p.name)
            )
            return [self._entry_for(p) for p in paths]
        except OSError as e:
            raise StorageReadError(
                f"Failed to list local test results in {self.storage_dir}: {e}"
            ) from e

    async def _read_object(self, entry: ObjectEntry) -> bytes:
        """Read one result file."""
        try:
            return (self.storage_dir / entry.object_id).read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(
                f"Local file {entry.object_name} no longer exists"
            ) from e
        except OSError as e:
            raise StorageReadError(
                f"Failed to read local file {entry.object_name}: {e}"
            ) from e

    async def _delete_object(self, entry: ObjectEntry) -> None:
        """Delete one result file."""
        try:
            (self.storage_dir / entry.object_id).unlink()
        except OSError as e:
            raise StorageWriteError(
                f"Failed to delete local file {entry.object_name}: {e}"
            ) from e

    def _entry_for(self, path: Path) -> ObjectEntry:
        stat = path.stat()
        return ObjectEntry(
            object_id=path.name,
            object_name=path.name,
            created_time=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            size=stat.st_size,
        )
