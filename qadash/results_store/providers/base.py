"""Abstract base class for test result storage providers."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import ClassVar

from pydantic import BaseModel, Field, ValidationError

from qadash.results_store.analytics import aggregate
from qadash.results_store.errors import ObjectNotFoundError, ParseError, StorageError
from qadash.results_store.filtering import (
    apply_residual_filters,
    residual_dimensions,
    sort_newest_first,
)
from qadash.results_store.models.analytics import AnalyticsSummary
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.storage import StorageInfo
from qadash.results_store.models.test_result import (
    StoredObject,
    StoredTestResult,
    TestResultRecord,
)
from qadash.results_store.naming import build_object_name

logger = logging.getLogger(__name__)


class ObjectEntry(BaseModel):
    """A stored object as listed by a provider, before download."""

    object_id: str = Field(..., description="Provider object id")
    object_name: str = Field(..., description="Object name")
    created_time: datetime | None = Field(
        default=None, description="Provider creation time"
    )
    size: int = Field(default=0, description="Size in bytes")


def parse_stored_record(raw: bytes, entry: ObjectEntry) -> StoredTestResult:
    """Parse a downloaded object into a stored test result.

    Raises:
        ParseError: If the object is not a JSON document of the expected shape

    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(entry.object_name, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(entry.object_name, "document is not a JSON object")

    try:
        return StoredTestResult.model_validate(
            {
                **data,
                "objectId": entry.object_id,
                "objectName": entry.object_name,
                "createdTime": entry.created_time,
            }
        )
    except ValidationError as e:
        raise ParseError(entry.object_name, str(e)) from e


class RecordStoreAdapter(ABC):
    """Abstract base for test result storage providers.

    Subclasses implement the provider primitives (write, list, read, delete)
    and declare which filter dimensions their list query handles natively.
    Everything else, including residual filtering, ordering, analytics and
    retention cleanup, is shared here.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    native_filters: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, request_timeout: float = 30) -> None:
        """Initialize with the per-request timeout in seconds."""
        self.request_timeout = request_timeout

    @property
    def is_cloud(self) -> bool:
        """Whether the provider is a remote store."""
        return True

    @abstractmethod
    async def initialize(self) -> None:
        """Connect to the provider and locate or create the results container.

        Raises:
            InitializationError: If credentials are missing or invalid, or the
                provider is unreachable

        """

    @abstractmethod
    async def _write_object(
        self, object_name: str, record: TestResultRecord, payload: bytes
    ) -> StoredObject:
        """Write one serialized record into the results container.

        Raises:
            StorageWriteError: On any I/O or API failure

        """

    @abstractmethod
    async def _list_objects(self, criteria: FilterCriteria) -> list[ObjectEntry]:
        """List result objects, pushing down the native filter dimensions.

        Raises:
            StorageReadError: On any I/O or API failure

        """

    @abstractmethod
    async def _read_object(self, entry: ObjectEntry) -> bytes:
        """Download the raw content of one object.

        Raises:
            ObjectNotFoundError: If the object was removed after listing
            StorageReadError: On any other I/O or API failure

        """

    @abstractmethod
    async def _delete_object(self, entry: ObjectEntry) -> None:
        """Delete one object.

        Raises:
            StorageError: On any I/O or API failure

        """

    async def store_test_result(self, record: TestResultRecord) -> StoredObject:
        """Serialize and store one record.

        Args:
            record: Test result to persist

        Returns:
            Id, name and creation time of the stored object

        Raises:
            StorageWriteError: If the provider rejects the write

        """
        if not record.has_known_status:
            logger.warning(
                f"Storing test result '{record.test_name}' with unknown status "
                f"'{record.status}'"
            )

        object_name = build_object_name(record.test_name)
        payload = json.dumps(record.to_wire(), indent=2).encode()
        stored = await self._write_object(object_name, record, payload)

        logger.info(f"Test result stored in {self.description}: {stored.object_name}")
        return stored

    async def get_test_results(
        self, criteria: FilterCriteria | None = None
    ) -> list[StoredTestResult]:
        """Retrieve results matching criteria, newest first.

        Unparsable objects, and objects deleted between listing and download,
        are skipped with a warning.

        Raises:
            StorageReadError: If listing or downloading fails

        """
        criteria = criteria or FilterCriteria()
        entries = await self._list_objects(criteria)

        records: list[StoredTestResult] = []
        for entry in entries:
            try:
                raw = await self._read_object(entry)
            except ObjectNotFoundError as e:
                logger.warning(f"Skipping vanished object: {e}")
                continue

            try:
                records.append(parse_stored_record(raw, entry))
            except ParseError as e:
                logger.warning(f"Skipping stored object: {e}")

        residual = residual_dimensions(criteria, self.native_filters)
        if residual:
            logger.debug(f"Filtering in memory on: {', '.join(sorted(residual))}")
            records = apply_residual_filters(records, criteria, self.native_filters)
        results = sort_newest_first(records)

        logger.info(f"Retrieved {len(results)} test results from {self.description}")
        return results

    async def search_test_results(self, term: str) -> list[StoredTestResult]:
        """Case-insensitive search over test name, team member and project."""
        return await self.get_test_results(FilterCriteria(search_term=term))

    async def get_analytics(
        self, criteria: FilterCriteria | None = None
    ) -> AnalyticsSummary:
        """Summarize the results matching criteria."""
        return aggregate(await self.get_test_results(criteria))

    async def cleanup_old_results(self, days_to_keep: int = 90) -> int:
        """Delete results created more than days_to_keep days ago.

        Deletion is best-effort: a failure on one object is logged and the
        remaining objects are still processed.

        Returns:
            Number of deleted results

        """
        cutoff = datetime.now(UTC) - timedelta(days=days_to_keep)
        candidates = await self.get_test_results(FilterCriteria(end_date=cutoff))

        deleted_count = 0
        for record in candidates:
            if record.sort_time is None or record.sort_time >= cutoff:
                continue

            entry = ObjectEntry(
                object_id=record.object_id,
                object_name=record.object_name,
                created_time=record.created_time,
            )
            try:
                await self._delete_object(entry)
            except StorageError as e:
                logger.error(f"Failed to delete {record.object_name}: {e}")
                continue

            deleted_count += 1
            logger.info(f"Deleted old test result: {record.object_name}")

        logger.info(f"Cleanup completed. Deleted {deleted_count} old test results")
        return deleted_count

    async def get_storage_info(self) -> StorageInfo:
        """Return aggregate size and object count of the results container."""
        entries = await self._list_objects(FilterCriteria())

        total_size = sum(e.size for e in entries)
        created = [e.created_time for e in entries if e.created_time is not None]

        return StorageInfo(
            total_size=total_size,
            file_count=len(entries),
            total_size_mb=round(total_size / (1024 * 1024), 2),
            oldest_file=min(created) if created else None,
        )
