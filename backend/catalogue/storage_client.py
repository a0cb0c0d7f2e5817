"""
Client for the managed object store (Supabase Storage REST API).
"""

import logging
import mimetypes
import os
import time
from typing import Optional
from urllib.parse import quote

import httpx

from catalogue.errors import StorageError

logger = logging.getLogger(__name__)


def build_object_key(
    user_id: str,
    filename: Optional[str],
    content_type: Optional[str],
    now: Optional[float] = None,
) -> str:
    """
    Key an upload by owner and upload time: ``{user_id}_{epoch_millis}.{ext}``.

    The extension comes from the original filename, else from the MIME type,
    else ``bin``.
    """
    millis = int((time.time() if now is None else now) * 1000)

    ext = os.path.splitext(filename or "")[1].lstrip(".")
    if not ext and content_type:
        guessed = mimetypes.guess_extension(content_type) or ""
        ext = guessed.lstrip(".")
    return f"{user_id}_{millis}.{(ext or 'bin').lower()}"


class SupabaseStorageClient:
    """Uploads images to one bucket and hands out their public URLs."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        bucket: str = "product-files",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/storage/v1"
        self.anon_key = anon_key
        self.bucket = bucket
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def upload(
        self,
        key: str,
        content: bytes,
        content_type: str,
        access_token: Optional[str] = None,
    ) -> str:
        """
        Store ``content`` under ``key``.

        Args:
            key: Object key inside the bucket
            content: File bytes
            content_type: MIME type recorded with the object
            access_token: Caller's token, so bucket policies see the user

        Returns:
            The key that was written

        Raises:
            StorageError: If the request fails or the store rejects it
        """
        url = f"{self.base_url}/object/{self.bucket}/{quote(key)}"
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": content_type,
        }

        try:
            response = await self.client.post(url, content=content, headers=headers)
        except httpx.HTTPError as e:
            logger.error("[Storage] Upload of %s failed: %s", key, e)
            raise StorageError("Failed to upload image", detail=str(e)) from e

        if response.status_code >= 400:
            logger.error("[Storage] HTTP %s uploading %s", response.status_code, key)
            raise StorageError("Failed to upload image", detail=response.text[:500])

        logger.info("[Storage] Uploaded %s (%d bytes)", key, len(content))
        return key

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{quote(key)}"

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
