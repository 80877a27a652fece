"""Remote task replica over a Realtime-Database style REST API.

Documents live at ``{base}/tasks/{remote_id}.json``. Remote ids are
push-style keys generated on the client: 8 characters of timestamp followed
by 12 random characters, so they sort by creation time.
"""

import logging
import secrets
import time
from collections.abc import Sequence
from typing import Any

import httpx

from src.core.config import constants, settings
from src.core.errors import TransportError
from src.domain.task import TaskDocument


logger = logging.getLogger(__name__)


PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def generate_push_id(now_ms: int | None = None) -> str:
    """Generate a chronologically sortable 20-character document key."""
    timestamp = int(time.time() * 1000) if now_ms is None else now_ms
    time_chars = []
    for _ in range(8):
        time_chars.append(PUSH_CHARS[timestamp % 64])
        timestamp //= 64
    random_chars = "".join(secrets.choice(PUSH_CHARS) for _ in range(12))
    return "".join(reversed(time_chars)) + random_chars


class HttpRemoteReplica:
    """RemoteReplica adapter backed by httpx."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        auth_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.remote_base_url).rstrip("/")
        self._auth_token = auth_token if auth_token is not None else settings.remote_auth_token
        self._client = client or httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, remote_id: str | None = None) -> str:
        path = constants.REMOTE_TASKS_PATH if remote_id is None else f"{constants.REMOTE_TASKS_PATH}/{remote_id}"
        return f"{self._base_url}/{path}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, params=self._params(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "remote_request_failed",
                extra={"method": method, "url": url, "status": e.response.status_code},
            )
            msg = f"Remote store returned {e.response.status_code} for {method} {url}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            logger.error("remote_request_failed", extra={"method": method, "url": url, "error": str(e)})
            msg = f"Remote store unreachable for {method} {url}: {e}"
            raise TransportError(msg) from e
        return response

    async def allocate_id(self) -> str:
        """Reserve a fresh remote id. Nothing is written until ``put``."""
        return generate_push_id()

    async def put(self, remote_id: str, document: TaskDocument) -> None:
        """Create or overwrite the document stored under ``remote_id``."""
        await self._request("PUT", self._url(remote_id), json=document.to_payload())
        logger.info("Remote document written", extra={"remote_id": remote_id})

    async def get_all(self) -> Sequence[tuple[str, dict]]:
        """Fetch every task document as (remote_id, raw payload) pairs."""
        response = await self._request("GET", self._url())
        try:
            body = response.json()
        except ValueError as e:
            msg = f"Remote store returned a non-JSON body: {e}"
            raise TransportError(msg) from e

        # An empty collection comes back as null
        if not body:
            return []
        if not isinstance(body, dict):
            msg = f"Unexpected remote payload type: {type(body).__name__}"
            raise TransportError(msg)

        documents = list(body.items())
        logger.info("Loaded remote documents", extra={"count": len(documents)})
        return documents

    async def delete(self, remote_id: str) -> None:
        """Remove the document stored under ``remote_id``."""
        await self._request("DELETE", self._url(remote_id))
        logger.info("Remote document deleted", extra={"remote_id": remote_id})
