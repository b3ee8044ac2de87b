"""Content storage and retrieval pipeline.

Upload: validate → compress large text → store on the primary
content-addressed store → pin to the redundancy service → ``ipfs://<cid>``.

Retrieve: strip the scheme → walk the gateway chain → decode compressed
text → ``ContentRecord``.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol

import httpx

from tales_content.clients import GatewaySource, NFTStorageClient, PinataClient
from tales_content.codec import canonical_json
from tales_content.config import Settings
from tales_content.errors import TransientIOError, ValidationError
from tales_content.models import ContentRecord, strip_scheme, to_content_uri, validate_record
from tales_content.retry import RetryPolicy
from tales_content.sources import ContentSource, ContentSourceChain

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    """Primary content-addressed store."""

    async def store_blob(self, data: bytes, content_type: str = ...) -> str: ...


class Pinner(Protocol):
    """Secondary pinning service used for redundancy."""

    async def pin_json(
        self, content: Any, name: str, keyvalues: dict[str, str] | None = None
    ) -> str: ...

    async def pin_file(
        self,
        data: bytes,
        name: str,
        keyvalues: dict[str, str] | None = None,
        content_type: str = ...,
    ) -> str: ...


class ContentManager:
    """Uploads, pins and retrieves tale content.

    Holds only immutable configuration and the collaborators it was given;
    independent calls may run concurrently.

    Usage:
        async with httpx.AsyncClient() as http:
            manager = ContentManager.from_settings(settings, http)
            uri = await manager.upload_content({"text": "hello", "timestamp": 1})
            record = await manager.retrieve_content(uri)
    """

    def __init__(
        self,
        store: ContentStore,
        pinner: Pinner,
        sources: ContentSourceChain | Sequence[ContentSource],
        *,
        retry_policy: RetryPolicy | None = None,
        max_text_bytes: int = 100_000,
        compression_threshold: int = 1000,
        pin_required: bool = False,
        scheme: str = "ipfs",
    ) -> None:
        self._store = store
        self._pinner = pinner
        self._sources = (
            sources if isinstance(sources, ContentSourceChain) else ContentSourceChain(sources)
        )
        self._retry = retry_policy or RetryPolicy(scheme=scheme)
        self._max_text_bytes = max_text_bytes
        self._compression_threshold = compression_threshold
        self._pin_required = pin_required
        self._scheme = scheme

    @classmethod
    def from_settings(cls, config: Settings, http: httpx.AsyncClient) -> ContentManager:
        """Wire the real NFT.Storage, Pinata and gateway clients over ``http``.

        Raises:
            ValueError: NFT_STORAGE_KEY is not configured.
        """
        if not config.nft_storage_key:
            raise ValueError("NFT_STORAGE_KEY is not set in environment variables")

        return cls(
            store=NFTStorageClient(
                http, api_key=config.nft_storage_key, base_url=config.nft_storage_api_url
            ),
            pinner=PinataClient(
                http,
                api_key=config.pinata_api_key,
                secret_api_key=config.pinata_secret_api_key,
                base_url=config.pinata_api_url,
            ),
            sources=[GatewaySource(http, host) for host in config.gateway_hosts],
            retry_policy=RetryPolicy(
                max_retries=config.content_max_retries,
                retry_delay_ms=config.content_retry_delay_ms,
                scheme=config.content_scheme,
            ),
            max_text_bytes=config.content_max_text_bytes,
            compression_threshold=config.content_compression_threshold,
            pin_required=config.pin_required,
            scheme=config.content_scheme,
        )

    async def upload_content(self, record: ContentRecord | Mapping[str, Any]) -> str:
        """Validate, encode, store and pin a record; return its content URI.

        Raises:
            ValidationError: the record is malformed (no network call is made).
            TransientIOError: the store (or, with ``pin_required``, the pin)
                kept failing after the retry budget.
        """
        if isinstance(record, Mapping):
            record = ContentRecord.from_mapping(record)
        validate_record(record, max_text_bytes=self._max_text_bytes)

        stored = record.encoded(self._compression_threshold)
        document = stored.to_document()
        payload = canonical_json(document)

        cid = await self._retry.run(
            lambda: self._store.store_blob(payload, "application/json"),
            label="store content",
        )

        await self._pin(
            lambda: self._pinner.pin_json(
                document,
                name=f"tale_{record.timestamp}",
                keyvalues={"kind": "tale", "cid": cid},
            ),
            label=f"pin content {cid}",
        )

        uri = to_content_uri(cid, self._scheme)
        logger.info(
            "Uploaded tale %s (%d bytes, compressed=%s)", uri, len(payload), stored.compressed
        )
        return uri

    async def upload_media(self, data: bytes, media_type: str) -> str:
        """Store and pin a binary asset; return its content URI.

        No compression is applied; callers hand in already-compact media.
        """
        if not data:
            raise ValidationError("media data required")
        if not media_type or not media_type.strip():
            raise ValidationError("media type required")

        cid = await self._retry.run(
            lambda: self._store.store_blob(data, media_type),
            label="store media",
        )

        digest = hashlib.sha256(data).hexdigest()
        await self._pin(
            lambda: self._pinner.pin_file(
                data,
                name=f"media_{digest[:16]}",
                keyvalues={"kind": "media", "cid": cid, "media_type": media_type},
                content_type=media_type,
            ),
            label=f"pin media {cid}",
        )

        uri = to_content_uri(cid, self._scheme)
        logger.info("Uploaded media %s (%d bytes, %s)", uri, len(data), media_type)
        return uri

    async def retrieve_content(self, address: str) -> ContentRecord:
        """Fetch a record by ``ipfs://<cid>`` or bare CID and decode it.

        Raises:
            ValidationError: empty address.
            RetrievalError: no gateway served the document.
        """
        cid = strip_scheme(address, self._scheme)
        document = await self._sources.fetch(cid)
        return ContentRecord.from_document(document).decoded()

    async def verify_content(self, address: str) -> bool:
        """True if the record can be retrieved and looks like a tale. Never raises."""
        try:
            record = await self.retrieve_content(address)
        except Exception as e:
            logger.debug("Verification of %s failed: %s", address, e)
            return False

        ts = record.timestamp
        return (
            isinstance(record.text, str)
            and isinstance(ts, (int, float))
            and not isinstance(ts, bool)
        )

    def content_gateways(self, address: str) -> list[str]:
        """Gateway URLs for ``address`` in retrieval priority order."""
        return self._sources.urls_for(strip_scheme(address, self._scheme))

    async def _pin(self, operation: Callable[[], Awaitable[str]], *, label: str) -> None:
        try:
            await self._retry.run(operation, label=label)
        except TransientIOError:
            if self._pin_required:
                raise
            logger.warning("%s gave up; content is stored without pin redundancy", label)
