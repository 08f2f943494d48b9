"""Tests for the unified storage service."""

import logging
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from qadash.results_store.errors import InitializationError
from qadash.results_store.models.provider_config import (
    GoogleDriveConfig,
    LocalStorageConfig,
    OneDriveConfig,
    StorageSettings,
)
from qadash.results_store.models.test_result import TestResultRecord
from qadash.results_store.providers.local import LocalStorageAdapter
from qadash.results_store.providers.onedrive import OneDriveAdapter
from qadash.results_store.selection import SelectionPhase
from qadash.results_store.service import StorageService


def _record(name: str, status: str = "passed") -> TestResultRecord:
    return TestResultRecord(
        test_name=name,
        status=status,
        execution_time=5,
        framework="pytest",
        team_member_name="Alex",
        project_name="Checkout",
        environment="ci",
        created_at=datetime.now(UTC),
    )


@pytest.fixture
def local_settings(tmp_path: Path) -> StorageSettings:
    """Settings with no cloud credentials."""
    return StorageSettings(local=LocalStorageConfig(storage_dir=tmp_path / "results"))


async def test_initialize_without_credentials_uses_local(
    local_settings: StorageSettings,
) -> None:
    """With no cloud credentials the local provider is selected directly."""
    service = StorageService(local_settings)

    await service.initialize()

    assert service.provider_name == "local"
    assert service.state.phase is SelectionPhase.READY
    assert service.state.transitions == [
        (SelectionPhase.SELECTING, None),
        (SelectionPhase.INITIALIZING, "local"),
        (SelectionPhase.READY, "local"),
    ]
    info = service.get_provider_info()
    assert info.name == "local"
    assert info.type == "local"
    assert info.description == "Local File System Storage"


async def test_initialize_falls_back_when_cloud_fails(
    local_settings: StorageSettings, caplog: pytest.LogCaptureFixture
) -> None:
    """A cloud provider that fails to initialize falls back to local."""
    settings = local_settings.model_copy(update={"google_drive": GoogleDriveConfig()})
    service = StorageService(settings)

    with caplog.at_level(logging.WARNING):
        await service.initialize()

    assert service.provider_name == "local"
    assert service.state.transitions == [
        (SelectionPhase.SELECTING, None),
        (SelectionPhase.INITIALIZING, "google-drive"),
        (SelectionPhase.FALLING_BACK, "google-drive"),
        (SelectionPhase.INITIALIZING, "local"),
        (SelectionPhase.READY, "local"),
    ]
    assert "Falling back from google-drive to local storage" in caplog.text


async def test_initialize_falls_back_for_unknown_provider(
    local_settings: StorageSettings,
) -> None:
    """An unsupported explicit provider also falls back to local."""
    settings = local_settings.model_copy(update={"provider": "dropbox"})
    service = StorageService(settings)

    await service.initialize()

    assert service.provider_name == "local"


async def test_initialize_local_failure_propagates(tmp_path: Path) -> None:
    """If local storage itself is unusable, initialize raises."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    service = StorageService(
        StorageSettings(local=LocalStorageConfig(storage_dir=blocker))
    )

    with pytest.raises(InitializationError):
        await service.initialize()

    assert service.provider_name is None


async def test_initialize_cloud_provider(local_settings: StorageSettings) -> None:
    """A cloud provider that initializes becomes active."""
    settings = local_settings.model_copy(
        update={
            "onedrive": OneDriveConfig(tenant_id="t", client_id="c", client_secret="s")
        }
    )
    service = StorageService(settings)

    with patch.object(OneDriveAdapter, "initialize", AsyncMock()):
        await service.initialize()

    info = service.get_provider_info()
    assert info.name == "onedrive"
    assert info.type == "cloud"
    assert info.description == "Microsoft OneDrive Cloud Storage"


def test_get_provider_info_before_initialize(local_settings: StorageSettings) -> None:
    """get_provider_info raises before any provider is active."""
    with pytest.raises(InitializationError, match="not initialized"):
        StorageService(local_settings).get_provider_info()


async def test_operations_initialize_lazily(local_settings: StorageSettings) -> None:
    """The first operation initializes the service."""
    service = StorageService(local_settings)

    stored = await service.store_test_result(_record("Login Test"))
    results = await service.get_test_results()

    assert service.provider_name == "local"
    assert [r.object_id for r in results] == [stored.object_id]


async def test_forwarded_operations(local_settings: StorageSettings) -> None:
    """Search, analytics, storage info and cleanup reach the adapter."""
    service = StorageService(local_settings)
    await service.store_test_result(_record("Login Test", status="passed"))
    await service.store_test_result(_record("Payment Flow", status="failed"))

    found = await service.search_test_results("payment")
    summary = await service.get_analytics()
    info = await service.get_storage_info()
    deleted = await service.cleanup_old_results(90)

    assert [r.test_name for r in found] == ["Payment Flow"]
    assert summary.total_tests == 2
    assert summary.success_rate == 50.0
    assert info.file_count == 2
    assert deleted == 0


async def test_switch_provider_failure_keeps_current(
    local_settings: StorageSettings, caplog: pytest.LogCaptureFixture
) -> None:
    """A failed switch returns False and leaves the active provider alone."""
    service = StorageService(local_settings)
    await service.initialize()
    before = service.state

    with caplog.at_level(logging.ERROR):
        switched = await service.switch_provider("google-drive")

    assert switched is False
    assert service.state is before
    assert service.provider_name == "local"
    assert "Failed to switch to google-drive provider" in caplog.text


async def test_switch_provider_success(local_settings: StorageSettings) -> None:
    """A successful switch activates the new provider and extends history."""
    settings = local_settings.model_copy(
        update={
            "onedrive": OneDriveConfig(tenant_id="t", client_id="c", client_secret="s"),
            "provider": "local",
        }
    )
    service = StorageService(settings)
    await service.initialize()

    with patch.object(OneDriveAdapter, "initialize", AsyncMock()):
        switched = await service.switch_provider("OneDrive")

    assert switched is True
    assert service.provider_name == "onedrive"
    assert isinstance(service.state.adapter, OneDriveAdapter)
    assert service.state.transitions[-3:] == [
        (SelectionPhase.SELECTING, "onedrive"),
        (SelectionPhase.INITIALIZING, "onedrive"),
        (SelectionPhase.READY, "onedrive"),
    ]


async def test_switch_back_to_local(local_settings: StorageSettings) -> None:
    """Switching to local works from an uninitialized service."""
    service = StorageService(local_settings)

    assert await service.switch_provider("local") is True
    assert isinstance(service.state.adapter, LocalStorageAdapter)
