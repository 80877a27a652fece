"""Image asset storage over a Cloud-Storage style REST API.

Objects are uploaded to ``{bucket}/o?name=<path>`` and addressed afterwards by
the stable locator ``{bucket}/o/<url-encoded path>``.
"""

import logging
import mimetypes
from urllib.parse import quote

import httpx

from src.core.config import constants, settings
from src.core.errors import TransportError


logger = logging.getLogger(__name__)


class HttpAssetStore:
    """AssetStore adapter backed by httpx."""

    def __init__(
        self,
        *,
        bucket_url: str | None = None,
        auth_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bucket_url = (bucket_url or settings.asset_base_url).rstrip("/")
        self._auth_token = auth_token if auth_token is not None else settings.asset_auth_token
        self._client = client or httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._auth_token}"} if self._auth_token else {}

    def locator_for(self, key: str) -> str:
        """Stable locator of the object stored under ``key``."""
        return f"{self._bucket_url}/o/{quote(key, safe='')}"

    async def upload(self, data: bytes, key_hint: str) -> str:
        """Upload ``data`` under ``key_hint`` and return its locator."""
        content_type = mimetypes.guess_type(key_hint)[0] or "application/octet-stream"
        headers = {**self._headers(), "Content-Type": content_type}

        try:
            response = await self._client.post(
                f"{self._bucket_url}/o",
                params={"name": key_hint},
                content=data,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("asset_upload_failed", extra={"key": key_hint, "error": str(e)})
            msg = f"Failed to upload asset {key_hint}: {e}"
            raise TransportError(msg) from e

        locator = self.locator_for(key_hint)
        logger.info("Asset uploaded", extra={"key": key_hint, "size": len(data)})
        return locator

    async def delete(self, locator: str) -> None:
        """Delete the object behind ``locator``."""
        try:
            response = await self._client.delete(locator, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("asset_delete_failed", extra={"locator": locator, "error": str(e)})
            msg = f"Failed to delete asset {locator}: {e}"
            raise TransportError(msg) from e

        logger.info("Asset deleted", extra={"locator": locator})
