"""Google Drive provider implementation."""

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any

import aiohttp
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2 import service_account

from qadash.results_store.errors import (
    InitializationError,
    ObjectNotFoundError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from qadash.results_store.filtering import DATE_DIMENSIONS, EQUALITY_DIMENSIONS
from qadash.results_store.models.filter_criteria import FilterCriteria
from qadash.results_store.models.provider_config import GoogleDriveConfig
from qadash.results_store.models.test_result import StoredObject, TestResultRecord
from qadash.results_store.providers.base import ObjectEntry, RecordStoreAdapter
from qadash.results_store.providers.http import decode_json, send_request

logger = logging.getLogger(__name__)

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"

# Filter dimension -> Drive file property key
PROPERTY_KEYS = {
    "status": "status",
    "team_member": "teamMember",
    "project": "project",
}


def _escape(value: str) -> str:
    """Escape a value for a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _format_time(value: datetime) -> str:
    """Format a timestamp as RFC 3339 UTC with millisecond precision."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class GoogleDriveAdapter(RecordStoreAdapter):
    """Stores test results as JSON files in a Google Drive folder.

    Each file carries its record's status, team member, project and framework
    as Drive properties, and its createdTime is set from the record so that
    date bounds and exact-match filters run inside the Drive query.
    """

    name = "google-drive"
    description = "Google Drive Cloud Storage"
    native_filters = DATE_DIMENSIONS | EQUALITY_DIMENSIONS

    def __init__(self, config: GoogleDriveConfig, request_timeout: float = 30) -> None:
        """Initialize Google Drive provider with configuration."""
        super().__init__(request_timeout)
        self.config = config
        self.base_url = config.base_url
        self.folder_id: str | None = None
        self._credentials: service_account.Credentials | None = None

    async def initialize(self) -> None:
        """Load credentials and locate or create the results folder."""
        self._credentials = self._load_credentials()
        self.folder_id = await self._get_or_create_folder()
        logger.info("Google Drive service initialized successfully")

    def _load_credentials(self) -> service_account.Credentials | None:
        """Build service account credentials, or None for a pre-issued token."""
        if self.config.access_token:
            return None

        if self.config.credentials_json:
            raw = self.config.credentials_json
        elif self.config.credentials_file:
            try:
                raw = self.config.credentials_file.read_text()
            except OSError as e:
                raise InitializationError(
                    f"Cannot read Google Drive credentials file: {e}"
                ) from e
        else:
            raise InitializationError(
                "Google Drive credentials not found. Set GOOGLE_DRIVE_CREDENTIALS "
                "or GOOGLE_APPLICATION_CREDENTIALS."
            )

        try:
            key_info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InitializationError(
                f"Invalid JSON in Google Drive credentials: {e}"
            ) from e

        try:
            return service_account.Credentials.from_service_account_info(
                key_info, scopes=[DRIVE_SCOPE]
            )
        except (ValueError, KeyError, GoogleAuthError) as e:
            raise InitializationError(
                f"Invalid Google Drive service account key: {e}"
            ) from e

    async def _access_token(self, error_cls: type[StorageError]) -> str:
        """Return a valid access token, refreshing service account tokens."""
        if self.config.access_token:
            return self.config.access_token

        if self._credentials is None:
            raise error_cls("Google Drive provider is not initialized")

        if not self._credentials.valid:
            try:
                await asyncio.to_thread(self._credentials.refresh, GoogleRequest())
            except GoogleAuthError as e:
                raise error_cls(f"Failed to authenticate with Google Drive: {e}") from e

        return str(self._credentials.token)

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
        """Find the results folder by name, creating it if missing."""
        query = (
            f"name='{_escape(self.config.folder_name)}' "
            f"and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        )
        action = "search for results folder"
        _, body = await self._call(
            "GET",
            f"{self.base_url}/drive/v3/files",
            InitializationError,
            action,
            params={"q": query, "fields": "files(id, name)"},
        )
        files = decode_json(body, error_cls=InitializationError, action=action).get(
            "files", []
        )

        if files:
            logger.info(f"Using existing {self.config.folder_name} folder")
            return str(files[0]["id"])

        action = "create results folder"
        _, body = await self._call(
            "POST",
            f"{self.base_url}/drive/v3/files",
            InitializationError,
            action,
            params={"fields": "id"},
            json={
                "name": self.config.folder_name,
                "mimeType": FOLDER_MIME_TYPE,
                "description": "Centralized QA test results and analytics",
            },
        )
        folder = decode_json(body, error_cls=InitializationError, action=action)
        logger.info(f"Created new {self.config.folder_name} folder")
        return str(folder["id"])

    def _require_folder(self, error_cls: type[StorageError]) -> str:
        if self.folder_id is None:
            raise error_cls("Google Drive provider is not initialized")
        return self.folder_id

    async def _write_object(
        self, object_name: str, record: TestResultRecord, payload: bytes
    ) -> StoredObject:
        """Upload the record with its indexable properties."""
        folder_id = self._require_folder(StorageWriteError)
        metadata = {
            "name": object_name,
            "parents": [folder_id],
            "mimeType": JSON_MIME_TYPE,
            "createdTime": _format_time(record.created_at),
            "description": (
                f"Test result for {record.test_name} "
                f"executed by {record.team_member_name}"
            ),
            "properties": {
                "testName": record.test_name,
                "status": record.status,
                "teamMember": record.team_member_name,
                "project": record.project_name,
                "framework": record.framework,
                "timestamp": _format_time(datetime.now(UTC)),
            },
        }

        writer = aiohttp.MultipartWriter("related")
        writer.append_json(metadata)
        writer.append(payload, {"Content-Type": JSON_MIME_TYPE})

        action = "upload test result"
        _, body = await self._call(
            "POST",
            f"{self.base_url}/upload/drive/v3/files",
            StorageWriteError,
            action,
            params={"uploadType": "multipart", "fields": "id, name, createdTime"},
            data=writer,
        )
        data = decode_json(body, error_cls=StorageWriteError, action=action)

        return StoredObject(
            object_id=str(data["id"]),
            object_name=str(data.get("name", object_name)),
            created_at=data.get("createdTime") or datetime.now(UTC),
        )

    def build_query(self, criteria: FilterCriteria) -> str:
        """Build the Drive query for the results folder and native criteria."""
        folder_id = self._require_folder(StorageReadError)
        clauses = [
            f"'{_escape(folder_id)}' in parents",
            "trashed=false",
            f"mimeType='{JSON_MIME_TYPE}'",
        ]

        if criteria.start_date is not None:
            clauses.append(f"createdTime >= '{_format_time(criteria.start_date)}'")
        if criteria.end_date is not None:
            clauses.append(f"createdTime <= '{_format_time(criteria.end_date)}'")

        for dimension, key in PROPERTY_KEYS.items():
            value = getattr(criteria, dimension)
            if value:
                clauses.append(
                    f"properties has {{ key='{key}' and value='{_escape(value)}' }}"
                )

        return " and ".join(clauses)

    async def _list_objects(self, criteria: FilterCriteria) -> list[ObjectEntry]:
        """List result files page by page, filtered by the Drive query."""
        params = {
            "q": self.build_query(criteria),
            "fields": "nextPageToken, files(id, name, createdTime, size)",
            "orderBy": "createdTime desc",
            "pageSize": "1000",
        }
        action = "list test results"

        entries: list[ObjectEntry] = []
        while True:
            _, body = await self._call(
                "GET",
                f"{self.base_url}/drive/v3/files",
                StorageReadError,
                action,
                params=params,
            )
            data = decode_json(body, error_cls=StorageReadError, action=action)

            for file in data.get("files", []):
                entries.append(
                    ObjectEntry(
                        object_id=str(file["id"]),
                        object_name=str(file.get("name", "")),
                        created_time=file.get("createdTime"),
                        size=int(file.get("size") or 0),
                    )
                )

            page_token = data.get("nextPageToken")
            if not page_token:
                return entries
            params = {**params, "pageToken": page_token}

    async def _read_object(self, entry: ObjectEntry) -> bytes:
        """Download file content."""
        status, body = await self._call(
            "GET",
            f"{self.base_url}/drive/v3/files/{entry.object_id}",
            StorageReadError,
            f"download {entry.object_name}",
            expected=(200, 404),
            params={"alt": "media"},
        )
        if status == 404:
            raise ObjectNotFoundError(
                f"Drive file {entry.object_name} no longer exists"
            )
        return body

    async def _delete_object(self, entry: ObjectEntry) -> None:
        """Delete a file."""
        await self._call(
            "DELETE",
            f"{self.base_url}/drive/v3/files/{entry.object_id}",
            StorageWriteError,
            f"delete {entry.object_name}",
            expected=(200, 204),
        )
