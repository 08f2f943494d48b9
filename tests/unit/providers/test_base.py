"""Tests for the shared record store adapter behavior."""

import json
import logging
from datetime import UTC, datetime, timedelta

import pytest

from qadash.results_store.errors import (
    ParseError,
    StorageReadError,
    StorageWriteError,
)
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.test_result import StoredObject, TestResultRecord
from qadash.results_store.providers.base import (
    ObjectEntry,
    RecordStoreAdapter,
    parse_stored_record,
)


class InMemoryAdapter(RecordStoreAdapter):
    """Concrete implementation for testing."""

    name = "memory"
    description = "In-Memory Storage"

    def __init__(self, native_filters: frozenset[str] = frozenset()) -> None:
        """Initialize with an empty object map."""
        super().__init__()
        self.native_filters = native_filters  # type: ignore[misc]
        self.objects: dict[str, tuple[ObjectEntry, bytes]] = {}
        self.fail_reads: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.listed_with: list[FilterCriteria] = []

    async def initialize(self) -> None:
        """Nothing to set up."""

    def put(self, name: str, raw: bytes, created: datetime | None = None) -> str:
        """Place a raw object directly into the store and return its id."""
        object_id = f"obj-{len(self.objects)}"
        entry = ObjectEntry(
            object_id=object_id,
            object_name=name,
            created_time=created or datetime.now(UTC),
            size=len(raw),
        )
        self.objects[object_id] = (entry, raw)
        return object_id

    async def _write_object(
        self, object_name: str, record: TestResultRecord, payload: bytes
    ) -> StoredObject:
        """Store the payload under its name."""
        object_id = self.put(object_name, payload)
        return StoredObject(
            object_id=object_id,
            object_name=object_name,
            created_at=datetime.now(UTC),
        )

    async def _list_objects(self, criteria: FilterCriteria) -> list[ObjectEntry]:
        """Return every entry, recording the criteria."""
        self.listed_with.append(criteria)
        return [entry for entry, _ in self.objects.values()]

    async def _read_object(self, entry: ObjectEntry) -> bytes:
        """Return stored bytes or fail on request."""
        if entry.object_id in self.fail_reads:
            raise StorageReadError(f"cannot read {entry.object_name}")
        return self.objects[entry.object_id][1]

    async def _delete_object(self, entry: ObjectEntry) -> None:
        """Remove an object or fail on request."""
        if entry.object_id in self.fail_deletes:
            raise StorageWriteError(f"cannot delete {entry.object_name}")
        del self.objects[entry.object_id]


def _record(name: str, status: str = "passed", **fields: object) -> TestResultRecord:
    data: dict[str, object] = {
        "test_name": name,
        "status": status,
        "execution_time": 10,
        "framework": "pytest",
        "team_member_name": "Alex",
        "project_name": "Checkout",
        "environment": "staging",
        "created_at": datetime.now(UTC),
    }
    data.update(fields)
    return TestResultRecord.model_validate(data)


@pytest.fixture
def adapter() -> InMemoryAdapter:
    """Create in-memory adapter."""
    return InMemoryAdapter()


def test_parse_stored_record_valid() -> None:
    """parse_stored_record augments the document with object identity."""
    entry = ObjectEntry(
        object_id="id-1",
        object_name="test-result-1-a.json",
        created_time=datetime(2026, 1, 1, tzinfo=UTC),
    )
    raw = json.dumps({"test_name": "a", "status": "passed"}).encode()

    record = parse_stored_record(raw, entry)

    assert record.test_name == "a"
    assert record.object_id == "id-1"
    assert record.object_name == "test-result-1-a.json"
    assert record.created_time == datetime(2026, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    "raw",
    [b"not json {", b"[1, 2, 3]", b'{"execution_time": "slow"}', b"\xff\xfe"],
)
def test_parse_stored_record_invalid(raw: bytes) -> None:
    """parse_stored_record raises ParseError for corrupt documents."""
    entry = ObjectEntry(object_id="x", object_name="broken.json")
    with pytest.raises(ParseError, match="broken.json"):
        parse_stored_record(raw, entry)


async def test_store_then_get(adapter: InMemoryAdapter) -> None:
    """A stored record is returned by get_test_results."""
    stored = await adapter.store_test_result(_record("Login Test"))

    results = await adapter.get_test_results()

    assert len(results) == 1
    assert results[0].object_id == stored.object_id
    assert results[0].test_name == "Login Test"
    assert stored.object_name.startswith("test-result-")
    assert stored.object_name.endswith("-Login-Test.json")


async def test_store_writes_wire_document(adapter: InMemoryAdapter) -> None:
    """The stored payload is the record's JSON document."""
    record = _record("Login Test", metadata={"browser": "chrome"})
    stored = await adapter.store_test_result(record)

    _, raw = adapter.objects[stored.object_id]

    assert json.loads(raw) == record.to_wire()


async def test_store_unknown_status_warns(
    adapter: InMemoryAdapter, caplog: pytest.LogCaptureFixture
) -> None:
    """Unknown statuses are stored with a warning."""
    with caplog.at_level(logging.WARNING):
        await adapter.store_test_result(_record("x", status="flaky"))

    assert "unknown status 'flaky'" in caplog.text
    assert len(adapter.objects) == 1


async def test_get_skips_corrupt_objects(
    adapter: InMemoryAdapter, caplog: pytest.LogCaptureFixture
) -> None:
    """Corrupt objects are omitted with a warning, valid ones still returned."""
    await adapter.store_test_result(_record("a"))
    await adapter.store_test_result(_record("b"))
    adapter.put("test-result-0-corrupt.json", b"definitely not json")

    with caplog.at_level(logging.WARNING):
        results = await adapter.get_test_results(FilterCriteria())

    assert sorted(r.test_name for r in results) == ["a", "b"]
    assert "test-result-0-corrupt.json" in caplog.text


async def test_get_propagates_read_errors(adapter: InMemoryAdapter) -> None:
    """Download failures propagate as StorageReadError."""
    stored = await adapter.store_test_result(_record("a"))
    adapter.fail_reads.add(stored.object_id)

    with pytest.raises(StorageReadError):
        await adapter.get_test_results()


async def test_get_newest_first(adapter: InMemoryAdapter) -> None:
    """Results are ordered by created_at, newest first."""
    now = datetime.now(UTC)
    await adapter.store_test_result(_record("old", created_at=now - timedelta(days=2)))
    await adapter.store_test_result(_record("new", created_at=now))
    await adapter.store_test_result(_record("mid", created_at=now - timedelta(days=1)))

    results = await adapter.get_test_results()

    assert [r.test_name for r in results] == ["new", "mid", "old"]


async def test_get_is_idempotent(adapter: InMemoryAdapter) -> None:
    """Two reads without writes in between return the same ordered list."""
    for name in ["a", "b", "c"]:
        await adapter.store_test_result(_record(name))

    first = await adapter.get_test_results()
    second = await adapter.get_test_results()

    assert [r.object_id for r in first] == [r.object_id for r in second]


async def test_get_round_trip_filters(adapter: InMemoryAdapter) -> None:
    """Criteria matching all fields include the record once; others exclude it."""
    record = _record("Login Test", status="failed", team_member_name="Sam")
    await adapter.store_test_result(record)

    matching = FilterCriteria(
        start_date=record.created_at - timedelta(seconds=1),
        end_date=record.created_at + timedelta(seconds=1),
        status="failed",
        team_member="Sam",
        project="Checkout",
        search_term="login",
    )
    non_matching = FilterCriteria(status="passed", team_member="Alex", project="X")

    assert len(await adapter.get_test_results(matching)) == 1
    assert await adapter.get_test_results(non_matching) == []


async def test_native_dimensions_are_not_refiltered() -> None:
    """Dimensions the provider handled natively are skipped in memory."""
    adapter = InMemoryAdapter(native_filters=frozenset({"status"}))
    await adapter.store_test_result(_record("a", status="passed"))

    # The in-memory provider ignores criteria, so a natively "filtered"
    # status shows how the residual pass trusts the provider.
    results = await adapter.get_test_results(FilterCriteria(status="failed"))

    assert len(results) == 1
    assert adapter.listed_with[-1].status == "failed"


async def test_search(adapter: InMemoryAdapter) -> None:
    """search_test_results matches case-insensitively on the test name."""
    await adapter.store_test_result(_record("Login Test"))
    await adapter.store_test_result(_record("Payment Flow"))

    results = await adapter.search_test_results("login")

    assert [r.test_name for r in results] == ["Login Test"]


async def test_get_analytics(adapter: InMemoryAdapter) -> None:
    """get_analytics aggregates the filtered results."""
    for status in ["passed", "passed", "failed", "skipped"]:
        await adapter.store_test_result(_record(f"t-{status}", status=status))

    summary = await adapter.get_analytics(FilterCriteria())

    assert summary.total_tests == 4
    assert summary.passed_tests == 2
    assert summary.failed_tests == 1
    assert summary.skipped_tests == 1
    assert summary.success_rate == 50.00


async def test_get_analytics_empty(adapter: InMemoryAdapter) -> None:
    """An empty store yields a zeroed summary."""
    summary = await adapter.get_analytics()
    assert summary.total_tests == 0
    assert summary.success_rate == 0
    assert summary.avg_execution_time == 0


async def test_cleanup_deletes_only_old_results(adapter: InMemoryAdapter) -> None:
    """cleanup_old_results deletes records older than the retention period."""
    now = datetime.now(UTC)
    await adapter.store_test_result(_record("old", created_at=now - timedelta(days=100)))
    await adapter.store_test_result(_record("new", created_at=now))

    deleted = await adapter.cleanup_old_results(90)

    remaining = await adapter.get_test_results()
    assert deleted == 1
    assert [r.test_name for r in remaining] == ["new"]


async def test_cleanup_is_best_effort(
    adapter: InMemoryAdapter, caplog: pytest.LogCaptureFixture
) -> None:
    """A failed deletion is logged and the others still proceed."""
    old = datetime.now(UTC) - timedelta(days=200)
    first = await adapter.store_test_result(_record("a", created_at=old))
    await adapter.store_test_result(_record("b", created_at=old))
    adapter.fail_deletes.add(first.object_id)

    with caplog.at_level(logging.ERROR):
        deleted = await adapter.cleanup_old_results(90)

    assert deleted == 1
    assert f"Failed to delete {first.object_name}" in caplog.text
    assert list(adapter.objects) == [first.object_id]


async def test_get_storage_info(adapter: InMemoryAdapter) -> None:
    """get_storage_info sums sizes and reports the oldest object."""
    adapter.put("a.json", b"x" * 1024, created=datetime(2026, 1, 2, tzinfo=UTC))
    adapter.put("b.json", b"y" * 2048, created=datetime(2026, 1, 1, tzinfo=UTC))

    info = await adapter.get_storage_info()

    assert info.total_size == 3072
    assert info.file_count == 2
    assert info.total_size_mb == 0.0
    assert info.oldest_file == datetime(2026, 1, 1, tzinfo=UTC)


async def test_get_storage_info_empty(adapter: InMemoryAdapter) -> None:
    """An empty container reports zero usage and no oldest file."""
    info = await adapter.get_storage_info()
    assert info.file_count == 0
    assert info.oldest_file is None
