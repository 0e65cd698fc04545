"""
Request and response bodies for the HTTP API.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LinkAccountRequest(BaseModel):
    """Tonie Cloud login supplied when linking an account."""

    username: str = Field(..., min_length=1, description="Tonie Cloud username (email).")
    password: str = Field(..., min_length=1, description="Tonie Cloud password.")
    display_name: Optional[str] = Field(
        default=None, description="Optional label shown instead of the username."
    )


class UnlinkAccountResponse(BaseModel):
    credential_id: int
    username: str
    households_deleted: int
    devices_deleted: int


class ContentUploadRequest(BaseModel):
    """Audio file supplied by the user for later sync to a Creative Tonie."""

    title: str = Field(..., min_length=1, description="Chapter title used on the device.")
    filename: str = Field(..., description="Original file name including extension.")
    mime_type: str = Field("audio/mpeg", description="MIME type of the audio file.")
    file_b64: str = Field(..., description="Base64-encoded file contents.")
    provider: Optional[str] = Field(
        default=None,
        description="Storage provider to use; defaults to STORAGE_DEFAULT_PROVIDER.",
    )


class ContentResponse(BaseModel):
    id: int
    household_id: int
    title: str
    locator: str


class LibraryRefreshResponse(BaseModel):
    households: int
    devices: int


__all__ = [
    "ContentResponse",
    "ContentUploadRequest",
    "LibraryRefreshResponse",
    "LinkAccountRequest",
    "UnlinkAccountResponse",
]
