"""Two-phase filtering of stored test results.

Adapters push whichever dimensions their provider can express into the
provider query (native phase). The remaining dimensions are applied here,
in memory, after each candidate object has been downloaded and parsed
(residual phase).
"""

from collections.abc import Iterable
from datetime import UTC, datetime

from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.test_result import StoredTestResult

DATE_DIMENSIONS = frozenset({"start_date", "end_date"})
EQUALITY_DIMENSIONS = frozenset({"status", "team_member", "project"})
ALL_DIMENSIONS = DATE_DIMENSIONS | EQUALITY_DIMENSIONS | {"search_term"}

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def residual_dimensions(
    criteria: FilterCriteria, native: frozenset[str]
) -> frozenset[str]:
    """Return the active dimensions the provider could not push down."""
    return criteria.active_dimensions() - native


def matches_search_term(record: StoredTestResult, term: str) -> bool:
    """Case-insensitive substring match on test name, team member and project."""
    needle = term.lower()
    return any(
        needle in value.lower()
        for value in (record.test_name, record.team_member_name, record.project_name)
    )


def matches_criteria(
    record: StoredTestResult,
    criteria: FilterCriteria,
    skip: frozenset[str] = frozenset(),
) -> bool:
    """Check a record against every criteria dimension not listed in skip."""
    active = criteria.active_dimensions() - skip

    if active & DATE_DIMENSIONS:
        timestamp = record.sort_time
        if timestamp is None:
            return False
        if "start_date" in active and timestamp < criteria.start_date:
            return False
        if "end_date" in active and timestamp > criteria.end_date:
            return False

    if "status" in active and record.status != criteria.status:
        return False
    if "team_member" in active and record.team_member_name != criteria.team_member:
        return False
    if "project" in active and record.project_name != criteria.project:
        return False
    if "search_term" in active and not matches_search_term(
        record, criteria.search_term or ""
    ):
        return False

    return True


def apply_residual_filters(
    records: Iterable[StoredTestResult],
    criteria: FilterCriteria,
    native: frozenset[str],
) -> list[StoredTestResult]:
    """Filter records on the dimensions that were not applied natively."""
    return [r for r in records if matches_criteria(r, criteria, skip=native)]


def sort_newest_first(records: Iterable[StoredTestResult]) -> list[StoredTestResult]:
    """Order records newest-first, breaking ties by object name."""
    return sorted(
        records,
        key=lambda r: (r.sort_time or _EPOCH, r.object_name),
        reverse=True,
    )
