"""Storage provider selection."""

import logging
from collections.abc import Callable
from enum import StrEnum

from qadash.results_store.errors import InitializationError
from qadash.results_store.models.provider_config import StorageSettings
from qadash.results_store.providers.base import RecordStoreAdapter
from qadash.results_store.providers.google_drive import GoogleDriveAdapter
from qadash.results_store.providers.local import LocalStorageAdapter
from qadash.results_store.providers.onedrive import OneDriveAdapter

logger = logging.getLogger(__name__)

LOCAL_PROVIDER = "local"


class SelectionPhase(StrEnum):
    """Phases of provider selection."""

    UNSELECTED = "unselected"
    SELECTING = "selecting"
    INITIALIZING = "initializing"
    FALLING_BACK = "falling_back"
    READY = "ready"


def _create_google_drive(settings: StorageSettings) -> RecordStoreAdapter:
    if settings.google_drive is None:
        raise InitializationError("Google Drive credentials are not configured")
    return GoogleDriveAdapter(settings.google_drive, settings.request_timeout)


def _create_onedrive(settings: StorageSettings) -> RecordStoreAdapter:
    if settings.onedrive is None:
        raise InitializationError("OneDrive credentials are not configured")
    return OneDriveAdapter(settings.onedrive, settings.request_timeout)


def _create_local(settings: StorageSettings) -> RecordStoreAdapter:
    return LocalStorageAdapter(settings.local, settings.request_timeout)


# Cloud providers are listed in auto-detection priority order
PROVIDERS: dict[str, Callable[[StorageSettings], RecordStoreAdapter]] = {
    "google-drive": _create_google_drive,
    "onedrive": _create_onedrive,
    LOCAL_PROVIDER: _create_local,
}


def select_provider_name(settings: StorageSettings) -> str:
    """Choose a provider name.

    An explicit setting wins; otherwise the first cloud provider with
    credentials configured; otherwise local storage.
    """
    if settings.provider:
        return settings.provider.lower()
    if settings.google_drive is not None:
        return "google-drive"
    if settings.onedrive is not None:
        return "onedrive"
    return LOCAL_PROVIDER


def create_adapter(provider_name: str, settings: StorageSettings) -> RecordStoreAdapter:
    """Create an uninitialized adapter for a provider name.

    Raises:
        InitializationError: If the provider is unknown or not configured

    """
    factory = PROVIDERS.get(provider_name.lower())
    if factory is None:
        raise InitializationError(
            f"Unsupported storage provider: {provider_name}. "
            f"Must be one of: {', '.join(PROVIDERS)}"
        )
    return factory(settings)


class ProviderState:
    """Active provider, its adapter and the selection transitions so far."""

    def __init__(
        self, transitions: list[tuple[SelectionPhase, str | None]] | None = None
    ) -> None:
        """Initialize an unselected state, optionally keeping prior history."""
        self.phase = SelectionPhase.UNSELECTED
        self.provider_name: str | None = None
        self.adapter: RecordStoreAdapter | None = None
        self.transitions: list[tuple[SelectionPhase, str | None]] = list(
            transitions or []
        )

    def transition(
        self, phase: SelectionPhase, provider_name: str | None = None
    ) -> None:
        """Move to a new phase and record it."""
        self.phase = phase
        self.transitions.append((phase, provider_name))
        if phase is SelectionPhase.FALLING_BACK:
            logger.warning(f"Falling back from {provider_name} to local storage")
        else:
            logger.debug(f"Storage selection: {phase} ({provider_name})")

    def ready(self, provider_name: str, adapter: RecordStoreAdapter) -> None:
        """Record the initialized adapter as active."""
        self.provider_name = provider_name
        self.adapter = adapter
        self.transition(SelectionPhase.READY, provider_name)
