"""Bounded retry with exponential backoff for remote writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tales_content.errors import TransientIOError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Sequential retry policy.

    Attempt ``n`` (1-based) is preceded by a wait of
    ``retry_delay_ms * 2**(n-2)`` for ``n >= 2``: 1s, 2s, 4s, ...

    Usage:
        policy = RetryPolicy(max_retries=3, retry_delay_ms=1000)
        cid = await policy.run(lambda: store.store_blob(data), label="store")
    """

    max_retries: int = 3
    retry_delay_ms: int = 1000
    scheme: str = "ipfs"
    sleep: Sleep = field(default=asyncio.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")

    def delay_ms(self, attempt_index: int) -> int:
        """Backoff before the retry following failed attempt ``attempt_index`` (0-based)."""
        return self.retry_delay_ms * (2**attempt_index)

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        """Run ``operation`` until it succeeds or the budget is spent.

        Raises:
            ValidationError: immediately, without retrying.
            TransientIOError: after ``max_retries`` failed attempts, chained to
                the last failure.
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                result = await operation()
            except ValidationError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    "Attempt %d/%d for %s failed: %s", attempt + 1, self.max_retries, label, e
                )
                if attempt < self.max_retries - 1:
                    await self.sleep(self.delay_ms(attempt) / 1000.0)
                continue

            if isinstance(result, str) and result.startswith(f"{self.scheme}://"):
                logger.debug("%s confirmed as %s", label, result)
            return result

        raise TransientIOError(label, self.max_retries, last_error) from last_error
