"""Request and response models for the JSON management API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from magnetdav.models import ContentRecord, FileEntry

API_BASE_PATH = "/api"
HEALTH_PATH = "/health"


class AddMagnetRequest(BaseModel):
    """Body of ``POST /api/magnets``."""

    magnet_uri: str = Field(..., description="Magnet link to add")

    @field_validator("magnet_uri")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "magnet_uri must not be empty"
            raise ValueError(msg)
        return value


class MagnetListResponse(BaseModel):
    """Records ordered by last access."""

    magnets: list[ContentRecord] = Field(default_factory=list)
    count: int = 0


class FileListResponse(BaseModel):
    """File entries of one record ordered by index."""

    magnet_id: str
    files: list[FileEntry] = Field(default_factory=list)
    count: int = 0


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: str = "ok"
    version: str
    auth: bool = False
    active_torrents: int = 0


class ErrorResponse(BaseModel):
    """Error response."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    details: dict[str, Any] | None = Field(None, description="Additional error details")
