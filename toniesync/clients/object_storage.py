"""
Presigned multipart POST to S3-compatible object storage.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Mapping, Optional

import httpx

from toniesync.core.errors import InvalidArgument, UploadRejected

logger = logging.getLogger(__name__)


class ObjectStorageUploader:
    """Push bytes to the URL and signed form fields handed out by ``POST /file``.

    Signed fields go into the form before the file part and in the order they
    were supplied; S3 rejects policies whose fields trail the file.
    """

    def __init__(self, *, http_client: httpx.AsyncClient | None = None) -> None:
        self._http = http_client or httpx.AsyncClient(timeout=None)

    async def upload(
        self,
        url: str,
        signed_fields: Mapping[str, Optional[str]],
        file_id: str,
        content: BinaryIO,
        *,
        content_type: str = "application/octet-stream",
    ) -> str:
        if not url:
            raise InvalidArgument("Upload URL is required.")
        if not signed_fields:
            raise InvalidArgument("Signed upload fields are required.")
        if not file_id:
            raise InvalidArgument("File id is required.")
        if content is None:
            raise InvalidArgument("Content stream is required.")

        # httpx writes ``data`` parts first, in insertion order, then ``files``.
        form = {name: value for name, value in signed_fields.items() if value is not None}
        files = {"file": (file_id, content, content_type)}

        logger.info("Uploading audio to object storage", extra={"file_id": file_id})
        try:
            response = await self._http.post(url, data=form, files=files)
        except httpx.HTTPError as exc:
            raise UploadRejected(f"Object storage upload failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Object storage rejected upload",
                extra={"file_id": file_id, "status_code": response.status_code},
            )
            raise UploadRejected(
                "Object storage rejected upload",
                status_code=response.status_code,
                body=response.text,
            )
        return file_id

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["ObjectStorageUploader"]
