"""Data models for stored test results, queries, analytics and settings."""

from qadash.results_store.models.analytics import (
    AnalyticsSummary,
    DailyTrend,
    GroupSummary,
)
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import (
    GoogleDriveConfig,
    LocalStorageConfig,
    OneDriveConfig,
    StorageSettings,
)
from qadash.results_store.models.storage import ProviderInfo, StorageInfo
from qadash.results_store.models.test_result import (
    StoredObject,
    StoredTestResult,
    TestResultRecord,
)

__all__ = [
    "AnalyticsSummary",
    "DailyTrend",
    "FilterCriteria",
    "GoogleDriveConfig",
    "GroupSummary",
    "LocalStorageConfig",
    "OneDriveConfig",
    "ProviderInfo",
    "StorageInfo",
    "StorageSettings",
    "StoredObject",
    "StoredTestResult",
    "TestResultRecord",
]
