"""Async client for the Pinata pinning API (redundancy pins)."""

import json
import logging
import time
from typing import Any

import httpx

from tales_content.config import settings
from tales_content.errors import StorageResponseError

logger = logging.getLogger(__name__)


class PinataClient:
    """Pins JSON documents and raw files to Pinata.

    Every pin carries ``pinataMetadata`` with a display name and
    ``keyvalues``; a ``timestamp`` key (ms, as a string) is always added.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str | None = None,
        secret_api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self._http = http
        self._api_key = api_key if api_key is not None else settings.pinata_api_key
        self._secret_api_key = (
            secret_api_key if secret_api_key is not None else settings.pinata_secret_api_key
        )
        self._base_url = (base_url or settings.pinata_api_url).rstrip("/")

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {
            "pinata_api_key": self._api_key,
            "pinata_secret_api_key": self._secret_api_key,
        }

    async def pin_json(
        self,
        content: Any,
        name: str,
        keyvalues: dict[str, str] | None = None,
    ) -> str:
        """Pin a JSON document and return its CID."""
        start_time = time.time()

        response = await self._http.post(
            f"{self._base_url}/pinning/pinJSONToIPFS",
            json={
                "pinataContent": content,
                "pinataMetadata": self._metadata(name, keyvalues),
            },
            headers=self._auth_headers,
        )
        response.raise_for_status()
        cid = self._parse_hash(response.json())

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info("[PIN] pinata json '%s' → %s (%.0fms)", name, cid, elapsed)

        return cid

    async def pin_file(
        self,
        data: bytes,
        name: str,
        keyvalues: dict[str, str] | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Pin a raw file (multipart upload) and return its CID."""
        start_time = time.time()

        response = await self._http.post(
            f"{self._base_url}/pinning/pinFileToIPFS",
            files={"file": (name, data, content_type)},
            data={"pinataMetadata": json.dumps(self._metadata(name, keyvalues))},
            headers=self._auth_headers,
        )
        response.raise_for_status()
        cid = self._parse_hash(response.json())

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info(
                "[PIN] pinata file '%s' (%d bytes) → %s (%.0fms)",
                name, len(data), cid, elapsed
            )

        return cid

    async def test_authentication(self) -> dict[str, Any]:
        """Call Pinata's auth probe; returns its JSON body on success."""
        response = await self._http.get(
            f"{self._base_url}/data/testAuthentication",
            headers=self._auth_headers,
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _metadata(name: str, keyvalues: dict[str, str] | None) -> dict[str, Any]:
        values = {"timestamp": str(int(time.time() * 1000))}
        if keyvalues:
            values.update({k: str(v) for k, v in keyvalues.items()})
        return {"name": name, "keyvalues": values}

    @staticmethod
    def _parse_hash(body: object) -> str:
        cid = str(body.get("IpfsHash") or "").strip() if isinstance(body, dict) else ""
        if not cid:
            raise StorageResponseError(f"pinata response missing IpfsHash: {body!r:.200}")
        return cid
