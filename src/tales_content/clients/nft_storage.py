"""Async client for the NFT.Storage upload API (primary content store)."""

import logging
import time

import httpx

from tales_content.config import settings
from tales_content.errors import StorageResponseError

logger = logging.getLogger(__name__)


class NFTStorageClient:
    """Stores raw blobs on NFT.Storage and returns their CID.

    The HTTP client is shared and owned by the caller; this class never
    opens or closes it.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self._http = http
        self._api_key = api_key if api_key is not None else settings.nft_storage_key
        self._base_url = (base_url or settings.nft_storage_api_url).rstrip("/")

    async def store_blob(self, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload ``data`` and return the bare CID.

        Raises:
            httpx.HTTPError: transport failure or non-2xx response.
            StorageResponseError: response did not carry a CID.
        """
        start_time = time.time()

        response = await self._http.post(
            f"{self._base_url}/upload",
            content=data,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": content_type,
            },
        )
        response.raise_for_status()
        cid = self._parse_cid(response.json())

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info(
                "[STORE] nft.storage (%d bytes, %s) → %s (%.0fms)",
                len(data), content_type, cid, elapsed
            )

        return cid

    @staticmethod
    def _parse_cid(body: object) -> str:
        """Pull ``value.cid`` out of an upload response."""
        cid = ""
        if isinstance(body, dict):
            value = body.get("value")
            if isinstance(value, dict):
                cid = str(value.get("cid") or "").strip()
            if not cid and body.get("ok") is False:
                error = body.get("error")
                raise StorageResponseError(f"nft.storage upload rejected: {error}")
        if not cid:
            raise StorageResponseError(f"nft.storage response missing cid: {body!r:.200}")
        return cid
