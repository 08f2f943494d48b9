"""Models describing the active storage provider and its usage."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ProviderInfo(BaseModel):
    """Identity of the active storage provider."""

    name: str = Field(..., description="Provider name (e.g., google-drive)")
    type: Literal["local", "cloud"] = Field(..., description="Provider kind")
    description: str = Field(..., description="Human-readable description")


class StorageInfo(BaseModel):
    """Aggregate usage of the results container."""

    model_config = ConfigDict(populate_by_name=True)

    total_size: int = Field(default=0, alias="totalSize", description="Bytes")
    file_count: int = Field(default=0, alias="fileCount")
    total_size_mb: float = Field(default=0, alias="totalSizeMB")
    oldest_file: datetime | None = Field(
        default=None, alias="oldestFile", description="Oldest object creation time"
    )
