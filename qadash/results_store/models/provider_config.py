"""Configuration models for storage providers."""

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_FOLDER_NAME = "QA Dashboard"


class GoogleDriveConfig(BaseModel):
    """Configuration for the Google Drive provider.

    Credentials are kept raw here and parsed when the provider initializes,
    so unusable credentials surface as an initialization failure.
    """

    credentials_json: str | None = Field(
        default=None, description="Service account key as a JSON string"
    )
    credentials_file: Path | None = Field(
        default=None, description="Path to a service account key file"
    )
    access_token: str | None = Field(
        default=None, description="Pre-issued OAuth access token"
    )
    folder_name: str = Field(
        default=DEFAULT_FOLDER_NAME, description="Drive folder holding results"
    )
    base_url: str = Field(
        default="https://www.googleapis.com", description="Google API base URL"
    )


class OneDriveConfig(BaseModel):
    """Configuration for the OneDrive provider."""

    tenant_id: str = Field(..., description="Azure AD tenant ID")
    client_id: str = Field(..., description="Application (client) ID")
    client_secret: str = Field(..., description="Client secret")
    user_id: str | None = Field(
        default=None, description="Drive owner; None targets /me/drive"
    )
    folder_name: str = Field(
        default=DEFAULT_FOLDER_NAME, description="Folder under the drive root"
    )
    graph_url: str = Field(
        default="https://graph.microsoft.com/v1.0", description="Graph API base URL"
    )
    login_url: str = Field(
        default="https://login.microsoftonline.com", description="Token endpoint host"
    )


class LocalStorageConfig(BaseModel):
    """Configuration for the local filesystem provider."""

    storage_dir: Path = Field(
        default=Path("data/test-results"), description="Directory holding results"
    )


class StorageSettings(BaseModel):
    """All storage settings for one process."""

    provider: str | None = Field(
        default=None, description="Explicit provider name; None auto-detects"
    )
    google_drive: GoogleDriveConfig | None = Field(default=None)
    onedrive: OneDriveConfig | None = Field(default=None)
    local: LocalStorageConfig = Field(default_factory=LocalStorageConfig)
    request_timeout: float = Field(
        default=30, gt=0, description="Per-request timeout in seconds"
    )

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "StorageSettings":
        """Build settings from environment variables.

        A cloud section is only present when its credentials are set.
        """
        google_drive = None
        if (
            "GOOGLE_DRIVE_CREDENTIALS" in environ
            or "GOOGLE_APPLICATION_CREDENTIALS" in environ
            or "GOOGLE_DRIVE_ACCESS_TOKEN" in environ
        ):
            google_drive = GoogleDriveConfig(
                credentials_json=environ.get("GOOGLE_DRIVE_CREDENTIALS"),
                credentials_file=environ.get("GOOGLE_APPLICATION_CREDENTIALS"),
                access_token=environ.get("GOOGLE_DRIVE_ACCESS_TOKEN"),
            )

        onedrive = None
        if (
            environ.get("ONEDRIVE_TENANT_ID")
            and environ.get("ONEDRIVE_CLIENT_ID")
            and environ.get("ONEDRIVE_CLIENT_SECRET")
        ):
            onedrive = OneDriveConfig(
                tenant_id=environ["ONEDRIVE_TENANT_ID"],
                client_id=environ["ONEDRIVE_CLIENT_ID"],
                client_secret=environ["ONEDRIVE_CLIENT_SECRET"],
                user_id=environ.get("ONEDRIVE_USER_ID"),
            )

        local = LocalStorageConfig()
        if "LOCAL_STORAGE_DIR" in environ:
            local = LocalStorageConfig(storage_dir=environ["LOCAL_STORAGE_DIR"])

        extra: dict[str, str] = {}
        if "STORAGE_REQUEST_TIMEOUT" in environ:
            extra["request_timeout"] = environ["STORAGE_REQUEST_TIMEOUT"]

        return cls(
            provider=environ.get("STORAGE_PROVIDER") or None,
            google_drive=google_drive,
            onedrive=onedrive,
            local=local,
            **extra,
        )
