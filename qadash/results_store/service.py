"""Unified storage service dispatching to the active provider."""

import logging

from qadash.results_store.errors import InitializationError
from qadash.results_store.models.analytics import AnalyticsSummary
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import StorageSettings
from qadash.results_store.models.storage import ProviderInfo, StorageInfo
from qadash.results_store.models.test_result import (
    StoredObject,
    StoredTestResult,
    TestResultRecord,
)
from qadash.results_store.providers.base import RecordStoreAdapter
from qadash.results_store.selection import (
    LOCAL_PROVIDER,
    ProviderState,
    SelectionPhase,
    create_adapter,
    select_provider_name,
)

logger = logging.getLogger(__name__)


class StorageService:
    """Single entry point to the active storage provider.

    One instance is constructed per process (or per test) and handed to
    whatever serves requests.
    """

    def __init__(self, settings: StorageSettings) -> None:
        """Initialize with settings; no provider is selected yet."""
        self.settings = settings
        self.state = ProviderState()

    @property
    def provider_name(self) -> str | None:
        """Name of the active provider, if selected."""
        return self.state.provider_name

    async def initialize(self) -> None:
        """Select and initialize a provider, falling back to local storage.

        Raises:
            InitializationError: Only if local storage itself cannot be used

        """
        state = ProviderState(self.state.transitions)
        state.transition(SelectionPhase.SELECTING)
        provider_name = select_provider_name(self.settings)

        state.transition(SelectionPhase.INITIALIZING, provider_name)
        try:
            adapter = await self._start(provider_name)
        except Exception as e:
            if provider_name == LOCAL_PROVIDER:
                raise
            logger.warning(f"Failed to initialize {provider_name} provider: {e}")
            state.transition(SelectionPhase.FALLING_BACK, provider_name)
            provider_name = LOCAL_PROVIDER
            state.transition(SelectionPhase.INITIALIZING, provider_name)
            adapter = await self._start(provider_name)

        state.ready(provider_name, adapter)
        self.state = state
        logger.info(f"Storage service initialized with provider: {provider_name}")

    async def switch_provider(self, provider_name: str) -> bool:
        """Switch to another provider without falling back.

        Returns:
            True on success; False if the new provider could not be
            initialized, in which case the current provider stays active

        """
        provider_name = provider_name.lower()
        logger.info(
            f"Switching storage provider from {self.provider_name} to {provider_name}"
        )

        state = ProviderState(self.state.transitions)
        state.transition(SelectionPhase.SELECTING, provider_name)
        state.transition(SelectionPhase.INITIALIZING, provider_name)
        try:
            adapter = await self._start(provider_name)
        except Exception as e:
            logger.error(f"Failed to switch to {provider_name} provider: {e}")
            return False

        state.ready(provider_name, adapter)
        self.state = state
        logger.info(f"Successfully switched to {provider_name} provider")
        return True

    async def _start(self, provider_name: str) -> RecordStoreAdapter:
        adapter = create_adapter(provider_name, self.settings)
        await adapter.initialize()
        return adapter

    async def _adapter(self) -> RecordStoreAdapter:
        if self.state.adapter is None:
            await self.initialize()

        adapter = self.state.adapter
        if adapter is None:
            raise InitializationError("Storage service is not initialized")
        return adapter

    def get_provider_info(self) -> ProviderInfo:
        """Describe the active provider.

        Raises:
            InitializationError: If no provider has been initialized yet

        """
        adapter = self.state.adapter
        if adapter is None or self.state.provider_name is None:
            raise InitializationError("Storage service is not initialized")

        return ProviderInfo(
            name=self.state.provider_name,
            type="cloud" if adapter.is_cloud else "local",
            description=adapter.description,
        )

    async def store_test_result(self, record: TestResultRecord) -> StoredObject:
        """Store one record with the active provider."""
        return await (await self._adapter()).store_test_result(record)

    async def get_test_results(
        self, criteria: FilterCriteria | None = None
    ) -> list[StoredTestResult]:
        """Retrieve matching records, newest first."""
        return await (await self._adapter()).get_test_results(criteria)

    async def search_test_results(self, term: str) -> list[StoredTestResult]:
        """Search records by test name, team member or project."""
        return await (await self._adapter()).search_test_results(term)

    async def get_analytics(
        self, criteria: FilterCriteria | None = None
    ) -> AnalyticsSummary:
        """Summarize matching records."""
        return await (await self._adapter()).get_analytics(criteria)

    async def cleanup_old_results(self, days_to_keep: int = 90) -> int:
        """Delete records older than days_to_keep days."""
        return await (await self._adapter()).cleanup_old_results(days_to_keep)

    async def get_storage_info(self) -> StorageInfo:
        """Return size and object count of the results container."""
        return await (await self._adapter()).get_storage_info()
