"""Error taxonomy for the content pipeline."""

from __future__ import annotations


class TalesContentError(Exception):
    """Base class for all content pipeline errors."""


class ValidationError(TalesContentError, ValueError):
    """Malformed or out-of-bound input. Never retried."""


class TransientIOError(TalesContentError):
    """A remote write that kept failing after the whole retry budget.

    The last underlying failure is available both as ``last_error`` and as
    the exception's ``__cause__``.
    """

    def __init__(self, label: str, attempts: int, last_error: BaseException | None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"{label} failed after {attempts} attempt(s){detail}")


class RetrievalError(TalesContentError):
    """Every content source was tried and none returned the document."""

    def __init__(
        self,
        message: str = "content not found on any gateway",
        failures: list[tuple[str, BaseException]] | None = None,
    ) -> None:
        self.failures = failures or []
        super().__init__(message)


class StorageResponseError(TalesContentError):
    """A storage or pinning API answered 2xx with a body we cannot use."""
