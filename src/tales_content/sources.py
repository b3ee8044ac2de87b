"""Ordered content sources with first-success fallback.

Retrieval walks a fixed priority list (primary gateway, mirrors, pinning
gateway). Each source gets exactly one try; there is no backoff here, the
list itself is the redundancy.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from tales_content.errors import RetrievalError

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Anything that can return a stored document by bare CID."""

    name: str

    def url_for(self, cid: str) -> str:
        """Public URL where this source serves ``cid``."""
        ...

    async def fetch(self, cid: str) -> dict[str, Any]:
        """Return the parsed JSON document, or raise."""
        ...


class ContentSourceChain:
    """Tries sources strictly in order and returns the first success.

    Usage:
        chain = ContentSourceChain([GatewaySource(http, "ipfs.io"), ...])
        document = await chain.fetch(cid)
    """

    def __init__(self, sources: Sequence[ContentSource]) -> None:
        if not sources:
            raise ValueError("at least one content source is required")
        self._sources = tuple(sources)

    @property
    def sources(self) -> tuple[ContentSource, ...]:
        return self._sources

    def urls_for(self, cid: str) -> list[str]:
        return [source.url_for(cid) for source in self._sources]

    async def fetch(self, cid: str) -> dict[str, Any]:
        """Fetch ``cid`` from the first source that answers.

        Raises:
            RetrievalError: every source failed; ``failures`` lists each
                (source name, error) in the order tried.
        """
        failures: list[tuple[str, BaseException]] = []

        for source in self._sources:
            try:
                document = await source.fetch(cid)
            except Exception as e:
                logger.debug("Source %s could not serve %s: %s", source.name, cid, e)
                failures.append((source.name, e))
                continue
            if failures:
                logger.info("Served %s from %s after %d miss(es)", cid, source.name, len(failures))
            return document

        raise RetrievalError(failures=failures)
