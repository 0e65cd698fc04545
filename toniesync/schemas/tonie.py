"""
Pydantic models for Tonie Cloud payloads.

Field aliases follow the camelCase JSON returned by ``api.tonie.cloud``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CloudModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenResponse(_CloudModel):
    """Password-grant response from the login realm."""

    access_token: str
    expires_in: int
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class Household(_CloudModel):
    """A family group in the Tonie Cloud."""

    id: str
    name: str
    access: str = Field(..., description="Either 'owner' or 'member'.")
    image: Optional[str] = None
    owner_name: Optional[str] = Field(None, alias="ownerName")
    can_leave: bool = Field(False, alias="canLeave")
    foreign_creative_tonie_content: bool = Field(
        False, alias="foreignCreativeTonieContent"
    )


class Chapter(_CloudModel):
    """One audio track on a Creative Tonie."""

    id: Optional[str] = None
    title: str
    seconds: float = 0.0
    file: Any = Field(
        None,
        description="Opaque file reference; a fileId string or a file object.",
    )
    transcoding: bool = False

    def to_patch_entry(self) -> Dict[str, Any]:
        return {"title": self.title, "file": self.file}


class DeletedChapter(_CloudModel):
    title: Optional[str] = None
    seconds: Optional[float] = None


class TranscodingError(_CloudModel):
    reason: Optional[str] = None
    message: Optional[str] = None
    deleted_chapters: List[DeletedChapter] = Field(
        default_factory=list, alias="deletedChapters"
    )


class CreativeTonie(_CloudModel):
    """A Creative Tonie device and, when fetched in detail, its chapters."""

    id: str
    household_id: str = Field(..., alias="householdId")
    name: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    seconds_present: float = Field(0.0, alias="secondsPresent")
    seconds_remaining: float = Field(0.0, alias="secondsRemaining")
    chapters_present: int = Field(0, alias="chaptersPresent")
    chapters_remaining: int = Field(0, alias="chaptersRemaining")
    transcoding: bool = False
    live: bool = False
    private: bool = False
    last_update: Optional[datetime] = Field(None, alias="lastUpdate")
    transcoding_errors: List[TranscodingError] = Field(
        default_factory=list, alias="transcodingErrors"
    )
    chapters: List[Chapter] = Field(default_factory=list)


class UploadRequest(_CloudModel):
    url: str
    fields: Dict[str, Optional[str]]


class UploadToken(_CloudModel):
    """Single-use presigned POST issued by ``POST /file``.

    ``request.fields`` keeps the order the server sent them in; the uploader
    relies on that order.
    """

    file_id: str = Field(..., alias="fileId")
    request: UploadRequest

    @property
    def url(self) -> str:
        return self.request.url

    @property
    def fields(self) -> Dict[str, Optional[str]]:
        return self.request.fields


class SyncResult(_CloudModel):
    """Outcome of pushing tracks to a device; never raised, always returned."""

    success: bool
    message: str = ""
    error_details: Optional[str] = Field(None, alias="errorDetails")
    tracks_processed: int = Field(0, alias="tracksProcessed")

    @classmethod
    def failed(cls, stage: str, exc: BaseException) -> "SyncResult":
        return cls(
            success=False,
            message=f"Sync failed during {stage}",
            error_details=f"{stage}: {exc}",
            tracks_processed=0,
        )


__all__ = [
    "Chapter",
    "CreativeTonie",
    "DeletedChapter",
    "Household",
    "SyncResult",
    "TokenResponse",
    "TranscodingError",
    "UploadRequest",
    "UploadToken",
]
