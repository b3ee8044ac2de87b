"""IPFS HTTP gateway as a content source."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def gateway_url(host: str, cid: str, scheme: str = "https") -> str:
    """Path-style gateway URL for a bare CID."""
    return f"{scheme}://{host.strip().rstrip('/')}/ipfs/{cid}"


class GatewaySource:
    """Fetches JSON documents from ``https://{host}/ipfs/{cid}``.

    One request per fetch; fallback across gateways is the caller's job.
    """

    def __init__(self, http: httpx.AsyncClient, host: str, scheme: str = "https") -> None:
        self._http = http
        self.host = host.strip().rstrip("/")
        self._scheme = scheme
        self.name = self.host

    def url_for(self, cid: str) -> str:
        return gateway_url(self.host, cid, self._scheme)

    async def fetch(self, cid: str) -> dict[str, Any]:
        """GET the document and parse it.

        Raises:
            httpx.HTTPError: transport failure or non-2xx response.
            ValueError: body is not a JSON object.
        """
        response = await self._http.get(self.url_for(cid))
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"expected a JSON object from {self.host}, got {type(body).__name__}")
        return body

    def __repr__(self) -> str:
        return f"GatewaySource({self.host!r})"
