"""Content record model and its stored JSON document shape.

A ``ContentRecord`` is the unit of storage: one tale body plus optional
media references, tags and caller metadata. Records are frozen; encoding
for upload and decoding after retrieval return new instances.

Stored document shape::

    {
        "text": "...",               # verbatim, or gzip+base64 when compressed
        "timestamp": 1700000000000,  # ms since epoch
        "media": ["ipfs://..."],     # optional
        "tags": ["..."],             # optional
        "metadata": {...},           # optional, caller-owned
        "_tales": {"compressed": true, "codec": "gzip+base64"},  # pipeline-owned
    }

``_tales`` is written for every record, as ``{"compressed": false}`` when
the text is verbatim.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from tales_content.codec import CODEC_NAME, compress_text, decompress_text, utf8_size
from tales_content.errors import ValidationError

DEFAULT_SCHEME: Final = "ipfs"

# Pipeline-owned key in the stored document, kept apart from caller metadata
INTERNAL_KEY: Final = "_tales"

# Older documents flagged compression inside caller metadata
LEGACY_FLAG: Final = "compressed"


@dataclass(frozen=True)
class ContentRecord:
    """A single tale body as stored off-chain."""

    text: str
    timestamp: int
    media: list[str] | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None

    # True while ``text`` holds the gzip+base64 form
    compressed: bool = False

    # Set when the compression flag came from metadata["compressed"]
    legacy_flag: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ContentRecord:
        """Build a record from caller input without coercing types.

        Values are taken as given so that :func:`validate_record` can report
        what is wrong with them.
        """
        return cls(
            text=data.get("text"),  # type: ignore[arg-type]
            timestamp=data.get("timestamp"),  # type: ignore[arg-type]
            media=data.get("media"),
            tags=data.get("tags"),
            metadata=data.get("metadata"),
        )

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> ContentRecord:
        """Parse a stored JSON document."""
        metadata = document.get("metadata")
        internal = document.get(INTERNAL_KEY)

        compressed = False
        legacy = False
        if isinstance(internal, Mapping):
            compressed = bool(internal.get("compressed", False))
        elif isinstance(metadata, Mapping) and metadata.get(LEGACY_FLAG) is True:
            compressed = True
            legacy = True

        return cls(
            text=document.get("text"),  # type: ignore[arg-type]
            timestamp=document.get("timestamp"),  # type: ignore[arg-type]
            media=_copy_list(document.get("media")),
            tags=_copy_list(document.get("tags")),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else metadata,
            compressed=compressed,
            legacy_flag=legacy,
        )

    def to_document(self) -> dict[str, Any]:
        """Render the JSON document that gets uploaded."""
        document: dict[str, Any] = {"text": self.text, "timestamp": self.timestamp}
        if self.media is not None:
            document["media"] = list(self.media)
        if self.tags is not None:
            document["tags"] = list(self.tags)
        if self.metadata is not None:
            document["metadata"] = dict(self.metadata)
        # Always present, so a caller metadata key is never read as the flag
        if self.compressed:
            document[INTERNAL_KEY] = {"compressed": True, "codec": CODEC_NAME}
        else:
            document[INTERNAL_KEY] = {"compressed": False}
        return document

    def encoded(self, threshold: int) -> ContentRecord:
        """Return a copy with text compressed if it is larger than ``threshold`` bytes."""
        if self.compressed or utf8_size(self.text) <= threshold:
            return self
        return dataclasses.replace(self, text=compress_text(self.text), compressed=True)

    def decoded(self) -> ContentRecord:
        """Return a copy whose text is the original, uncompressed body.

        Decoding errors propagate; a corrupt payload is not a missing one.
        """
        if not self.compressed:
            return self
        metadata = self.metadata
        if self.legacy_flag and metadata is not None:
            metadata = {**metadata, LEGACY_FLAG: False}
        return dataclasses.replace(
            self,
            text=decompress_text(self.text),
            metadata=metadata,
            compressed=False,
            legacy_flag=False,
        )


def validate_record(record: ContentRecord, *, max_text_bytes: int) -> None:
    """Check a record before upload.

    Raises:
        ValidationError: on the first violated constraint.
    """
    if not isinstance(record.text, str) or not record.text:
        raise ValidationError("text required")
    if utf8_size(record.text) > max_text_bytes:
        raise ValidationError("text too large")
    if record.media is not None and not isinstance(record.media, (list, tuple)):
        raise ValidationError("media must be a list")
    if record.tags is not None and not isinstance(record.tags, (list, tuple)):
        raise ValidationError("tags must be a list")
    ts = record.timestamp
    if isinstance(ts, bool) or not isinstance(ts, (int, float)) or ts <= 0:
        raise ValidationError("timestamp required")
    if record.metadata is not None and not isinstance(record.metadata, Mapping):
        raise ValidationError("metadata must be a mapping")


def to_content_uri(cid: str, scheme: str = DEFAULT_SCHEME) -> str:
    """``cid`` → ``scheme://cid``."""
    return f"{scheme}://{cid}"


def strip_scheme(address: str, scheme: str = DEFAULT_SCHEME) -> str:
    """Return the bare content address, with or without a ``scheme://`` prefix."""
    if not isinstance(address, str) or not address.strip():
        raise ValidationError("address required")
    address = address.strip()
    prefix = f"{scheme}://"
    if address.startswith(prefix):
        address = address[len(prefix):]
    cid = address.strip("/")
    if not cid:
        raise ValidationError("address required")
    return cid


def _copy_list(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value
