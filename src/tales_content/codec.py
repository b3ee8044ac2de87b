"""Text codec and canonical JSON for stored documents.

Compressed text is ``base64(gzip(utf8(text)))``. Gzip keeps documents
readable by the legacy uploader, which used the same framing.
"""

from __future__ import annotations

import base64
import gzip
import json
from typing import Any, Final

CODEC_NAME: Final = "gzip+base64"


def utf8_size(text: str) -> int:
    """Size of ``text`` in UTF-8 bytes."""
    return len(text.encode("utf-8"))


def compress_text(text: str) -> str:
    """Encode text as base64 of its gzip-compressed UTF-8 bytes."""
    # mtime=0 so identical text always yields identical bytes (and CIDs)
    packed = gzip.compress(text.encode("utf-8"), mtime=0)
    return base64.b64encode(packed).decode("ascii")


def decompress_text(encoded: str) -> str:
    """Reverse :func:`compress_text`.

    Raises:
        binascii.Error: ``encoded`` is not valid base64.
        gzip.BadGzipFile: payload is not gzip data.
        UnicodeDecodeError: inflated bytes are not UTF-8.
    """
    packed = base64.b64decode(encoded.encode("ascii"), validate=True)
    return gzip.decompress(packed).decode("utf-8")


def canonical_json(document: Any) -> bytes:
    """Serialize to compact, key-sorted UTF-8 JSON."""
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
