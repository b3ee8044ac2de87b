"""Shared pytest fixtures for content pipeline tests.

The fakes here stand in for NFT.Storage, Pinata and the IPFS gateways.
``FakeStore`` derives CIDs from the bytes it is given, so identical
uploads produce identical addresses like a real content-addressed store.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from tales_content.manager import ContentManager
from tales_content.retry import RetryPolicy


class FakeStore:
    """In-memory content-addressed store that can fail its first N calls."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[bytes, str]] = []
        self.blobs: dict[str, bytes] = {}

    async def store_blob(self, data: bytes, content_type: str = "application/octet-stream") -> str:
        self.calls.append((data, content_type))
        if self.failures > 0:
            self.failures -= 1
            raise httpx.ConnectError("store unavailable")
        cid = "bafy" + hashlib.sha256(data).hexdigest()[:40]
        self.blobs[cid] = data
        return cid

    def document(self, cid: str) -> dict[str, Any]:
        return json.loads(self.blobs[cid])


class FakePinner:
    """Records pins; can fail its first N calls."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[dict[str, Any]] = []

    async def pin_json(
        self, content: Any, name: str, keyvalues: dict[str, str] | None = None
    ) -> str:
        return self._pin(kind="json", content=content, name=name, keyvalues=keyvalues)

    async def pin_file(
        self,
        data: bytes,
        name: str,
        keyvalues: dict[str, str] | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        return self._pin(
            kind="file", content=data, name=name, keyvalues=keyvalues, content_type=content_type
        )

    def _pin(self, **call: Any) -> str:
        self.calls.append(call)
        if self.failures > 0:
            self.failures -= 1
            raise httpx.ReadTimeout("pin timed out")
        return "Qm" + hashlib.sha256(call["name"].encode()).hexdigest()[:44]


class StoreSource:
    """Content source that serves whatever FakeStore holds."""

    def __init__(self, store: FakeStore, name: str = "store", log: list[str] | None = None) -> None:
        self.store = store
        self.name = name
        self.log = log if log is not None else []

    def url_for(self, cid: str) -> str:
        return f"https://{self.name}/ipfs/{cid}"

    async def fetch(self, cid: str) -> dict[str, Any]:
        self.log.append(self.name)
        if cid not in self.store.blobs:
            raise httpx.HTTPStatusError(
                "404 Not Found",
                request=httpx.Request("GET", self.url_for(cid)),
                response=httpx.Response(404),
            )
        return self.store.document(cid)


class FailingSource:
    """Content source that always errors."""

    def __init__(self, name: str, log: list[str] | None = None) -> None:
        self.name = name
        self.log = log if log is not None else []

    def url_for(self, cid: str) -> str:
        return f"https://{self.name}/ipfs/{cid}"

    async def fetch(self, cid: str) -> dict[str, Any]:
        self.log.append(self.name)
        raise httpx.ConnectError(f"{self.name} unreachable")


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def pinner() -> FakePinner:
    return FakePinner()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


MakeManager = Callable[..., ContentManager]


@pytest.fixture
def make_manager(store: FakeStore, pinner: FakePinner, sleep: RecordingSleep) -> MakeManager:
    """Factory fixture for a ContentManager over the fakes."""

    def _make(
        *,
        store: FakeStore = store,
        pinner: FakePinner = pinner,
        sources: list[Any] | None = None,
        pin_required: bool = False,
        max_retries: int = 3,
    ) -> ContentManager:
        return ContentManager(
            store=store,
            pinner=pinner,
            sources=sources if sources is not None else [StoreSource(store)],
            retry_policy=RetryPolicy(max_retries=max_retries, retry_delay_ms=1000, sleep=sleep),
            pin_required=pin_required,
        )

    return _make


@pytest.fixture
def manager(make_manager: MakeManager) -> ContentManager:
    return make_manager()
