"""Microsoft OneDrive provider implementation."""

import logging
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import aiohttp

from qadash.results_store.errors import (
    InitializationError,
    ObjectNotFoundError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import OneDriveConfig
from qadash.results_store.models.test_result import StoredObject, TestResultRecord
from qadash.results_store.naming import is_result_object
from qadash.results_store.providers.base import ObjectEntry, RecordStoreAdapter
from qadash.results_store.providers.http import decode_json, send_request

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
PAGE_SIZE = 200
# Refresh tokens this many seconds before they expire
TOKEN_EXPIRY_MARGIN = 60


class OneDriveAdapter(RecordStoreAdapter):
    """Stores test results as JSON files in a OneDrive folder via Microsoft Graph.

    Graph cannot filter folder children by custom properties or by the
    record's own timestamp, so every criteria dimension is applied in memory.
    """

    name = "onedrive"
    description = "Microsoft OneDrive Cloud Storage"

    def __init__(self, config: OneDriveConfig, request_timeout: float = 30) -> None:
        """Initialize OneDrive provider with configuration."""
        super().__init__(request_timeout)
        self.config = config
        self.folder_id: str | None = None
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def drive_url(self) -> str:
        """Base URL of the target drive."""
        if self.config.user_id:
            return f"{self.config.graph_url}/users/{quote(self.config.user_id)}/drive"
        return f"{self.config.graph_url}/me/drive"

    async def initialize(self) -> None:
        """Acquire a token and locate or create the results folder."""
        await self._access_token(InitializationError)
        self.folder_id = await self._get_or_create_folder()
        logger.info("OneDrive service initialized successfully")

    async def _access_token(self, error_cls: type[StorageError]) -> str:
        """Return a cached token or request one with the client credentials."""
        if self._token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN:
            return self._token

        form = aiohttp.FormData()
        form.add_field("grant_type", "client_credentials")
        form.add_field("client_id", self.config.client_id)
        form.add_field("client_secret", self.config.client_secret)
        form.add_field("scope", GRAPH_SCOPE)

        action = "acquire OneDrive access token"
        _, body = await send_request(
            "POST",
            f"{self.config.login_url}/{self.config.tenant_id}/oauth2/v2.0/token",
            error_cls=error_cls,
            action=action,
            timeout=self.request_timeout,
            data=form,
        )
        data = decode_json(body, error_cls=error_cls, action=action)

        token = data.get("access_token")
        if not isinstance(token, str):
            raise error_cls("Access token not found in token response")

        self._token = token
        self._token_expires_at = time.time() + float(data.get("expires_in", 3600))
        return token

    async def _call(
        self,
        method: str,
        url: str,
        error_cls: type[StorageError],
        action: str,
        expected: tuple[int, ...] = (200,),
        **kwargs: Any,
    ) -> tuple[int, bytes]:
        token = await self._access_token(error_cls)
        return await send_request(
            method,
            url,
            error_cls=error_cls,
            action=action,
            timeout=self.request_timeout,
            expected=expected,
            token=token,
            **kwargs,
        )

    async def _get_or_create_folder(self) -> str:
        """Find the results folder under the drive root, creating it if missing."""
        action = "look up results folder"
        status, body = await self._call(
            "GET",
            f"{self.drive_url}/root:/{quote(self.config.folder_name)}",
            InitializationError,
            action,
            expected=(200, 404),
        )
        if status == 200:
            folder = decode_json(body, error_cls=InitializationError, action=action)
            logger.info(f"Using existing {self.config.folder_name} folder")
            return str(folder["id"])

        action = "create results folder"
        _, body = await self._call(
            "POST",
            f"{self.drive_url}/root/children",
            InitializationError,
            action,
            expected=(200, 201),
            json={
                "name": self.config.folder_name,
                "folder": {},
                "@microsoft.graph.conflictBehavior": "fail",
            },
        )
        folder = decode_json(body, error_cls=InitializationError, action=action)
        logger.info(f"Created new {self.config.folder_name} folder")
        return str(folder["id"])

    def _require_folder(self, error_cls: type[StorageError]) -> str:
        if self.folder_id is None:
            raise error_cls("OneDrive provider is not initialized")
        return self.folder_id

    async def _write_object(
        self, object_name: str, record: TestResultRecord, payload: bytes
    ) -> StoredObject:
        """Upload the record; OneDrive renames on a name conflict."""
        folder_id = self._require_folder(StorageWriteError)
        action = "upload test result"
        _, body = await self._call(
            "PUT",
            f"{self.drive_url}/items/{folder_id}:/{quote(object_name)}:/content",
            StorageWriteError,
            action,
            expected=(200, 201),
            params={"@microsoft.graph.conflictBehavior": "rename"},
            data=payload,
            headers={"Content-Type": "application/json"},
        )
        item = decode_json(body, error_cls=StorageWriteError, action=action)

        return StoredObject(
            object_id=str(item["id"]),
            object_name=str(item.get("name", object_name)),
            created_at=item.get("createdDateTime") or datetime.now(UTC),
        )

    async def _list_objects(self, criteria: FilterCriteria) -> list[ObjectEntry]:
        """List result files in the folder, following pagination links."""
        folder_id = self._require_folder(StorageReadError)
        action = "list test results"
        url: str | None = f"{self.drive_url}/items/{folder_id}/children"
        params: dict[str, str] | None = {
            "$top": str(PAGE_SIZE),
            "$select": "id,name,createdDateTime,size,file",
        }

        entries: list[ObjectEntry] = []
        while url:
            _, body = await self._call(
                "GET", url, StorageReadError, action, params=params
            )
            data = decode_json(body, error_cls=StorageReadError, action=action)

            for item in data.get("value", []):
                name = str(item.get("name", ""))
                if "file" not in item or not is_result_object(name):
                    continue
                entries.append(
                    ObjectEntry(
                        object_id=str(item["id"]),
                        object_name=name,
                        created_time=item.get("createdDateTime"),
                        size=int(item.get("size") or 0),
                    )
                )

            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        return entries

    async def _read_object(self, entry: ObjectEntry) -> bytes:
        """Download file content."""
        status, body = await self._call(
            "GET",
            f"{self.drive_url}/items/{entry.object_id}/content",
            StorageReadError,
            f"download {entry.object_name}",
            expected=(200, 404),
        )
        if status == 404:
            raise ObjectNotFoundError(
                f"OneDrive item {entry.object_name} no longer exists"
            )
        return body

    async def _delete_object(self, entry: ObjectEntry) -> None:
        """Delete a file."""
        await self._call(
            "DELETE",
            f"{self.drive_url}/items/{entry.object_id}",
            StorageWriteError,
            f"delete {entry.object_name}",
            expected=(200, 204),
        )
