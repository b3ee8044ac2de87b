"""Tales content pipeline: off-chain storage, pinning and retrieval for tales."""

from tales_content.errors import (
    RetrievalError,
    StorageResponseError,
    TalesContentError,
    TransientIOError,
    ValidationError,
)
from tales_content.models import ContentRecord

__version__ = "0.1.0"

__all__ = [
    "ContentRecord",
    "RetrievalError",
    "StorageResponseError",
    "TalesContentError",
    "TransientIOError",
    "ValidationError",
    "__version__",
]
