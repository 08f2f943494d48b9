"""Analytics computed from a set of stored test results.

Every provider feeds its results through these functions, so summaries do
not depend on which provider is active.
"""

import math
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from datetime import date

from qadash.results_store.models.analytics import (
    AnalyticsSummary,
    DailyTrend,
    GroupSummary,
)
from qadash.results_store.models.test_result import KNOWN_STATUSES, StoredTestResult

GROUP_KEYS: dict[str, Callable[[StoredTestResult], str]] = {
    "team_member": lambda r: r.team_member_name,
    "project": lambda r: r.project_name,
    "framework": lambda r: r.framework,
}


def _percent(part: int, total: int) -> float:
    if total == 0:
        return 0
    return round(part / total * 100, 2)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _distinct(values: Iterable[str]) -> list[str]:
    """Deduplicate values in first-seen order, dropping empty ones."""
    return list(dict.fromkeys(v for v in values if v))


def aggregate(records: Sequence[StoredTestResult]) -> AnalyticsSummary:
    """Compute summary statistics for a list of results.

    Statuses outside the known values are counted in other_tests only, so
    the four status counts never add up to more than total_tests.
    """
    total = len(records)
    if total == 0:
        return AnalyticsSummary()

    counts = Counter(r.status for r in records)
    passed = counts["passed"]
    failed = counts["failed"]
    other = sum(n for status, n in counts.items() if status not in KNOWN_STATUSES)

    execution_total = sum(r.execution_time for r in records)
    timestamps = [r.created_at for r in records if r.created_at is not None]

    return AnalyticsSummary(
        total_tests=total,
        passed_tests=passed,
        failed_tests=failed,
        skipped_tests=counts["skipped"],
        blocked_tests=counts["blocked"],
        other_tests=other,
        success_rate=_percent(passed, total),
        failure_rate=_percent(failed, total),
        avg_execution_time=_round_half_up(execution_total / total),
        frameworks=_distinct(r.framework for r in records),
        projects=_distinct(r.project_name for r in records),
        team_members=_distinct(r.team_member_name for r in records),
        last_updated=max(timestamps) if timestamps else None,
    )


def aggregate_by(records: Sequence[StoredTestResult], key: str) -> list[GroupSummary]:
    """Summarize results per team member, project or framework.

    Args:
        records: Results to group
        key: One of "team_member", "project", "framework"

    Returns:
        One summary per distinct non-empty value, in first-seen order

    Raises:
        ValueError: If key is not a supported grouping

    """
    if key not in GROUP_KEYS:
        raise ValueError(
            f"Unknown group key: {key}. Must be one of: {', '.join(GROUP_KEYS)}"
        )

    get_value = GROUP_KEYS[key]
    groups: dict[str, list[StoredTestResult]] = {}
    for record in records:
        value = get_value(record)
        if value:
            groups.setdefault(value, []).append(record)

    return [
        GroupSummary(key=value, summary=aggregate(members))
        for value, members in groups.items()
    ]


def daily_trends(records: Sequence[StoredTestResult]) -> list[DailyTrend]:
    """Count results per UTC calendar day, oldest day first."""
    days: dict[date, DailyTrend] = {}
    for record in records:
        if record.created_at is None:
            continue
        day = record.created_at.date()
        trend = days.setdefault(day, DailyTrend(day=day))
        trend.total_tests += 1
        if record.status == "passed":
            trend.passed_tests += 1
        elif record.status == "failed":
            trend.failed_tests += 1
        elif record.status == "skipped":
            trend.skipped_tests += 1
        elif record.status == "blocked":
            trend.blocked_tests += 1

    return [days[day] for day in sorted(days)]
