"""Public schema exports."""

from .api import (
    ContentResponse,
    ContentUploadRequest,
    LibraryRefreshResponse,
    LinkAccountRequest,
    UnlinkAccountResponse,
)
from .tonie import (
    Chapter,
    CreativeTonie,
    DeletedChapter,
    Household,
    SyncResult,
    TokenResponse,
    TranscodingError,
    UploadRequest,
    UploadToken,
)

__all__ = [
    "Chapter",
    "ContentResponse",
    "ContentUploadRequest",
    "CreativeTonie",
    "DeletedChapter",
    "Household",
    "LibraryRefreshResponse",
    "LinkAccountRequest",
    "SyncResult",
    "TokenResponse",
    "TranscodingError",
    "UnlinkAccountResponse",
    "UploadRequest",
    "UploadToken",
]
