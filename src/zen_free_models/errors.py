"""Exception types raised by the matcher."""

from __future__ import annotations


class MatcherError(Exception):
    """Base class for matcher failures."""


class InvalidInput(MatcherError, ValueError):
    """Caller supplied arguments of the wrong shape."""


class BackendError(MatcherError):
    """The language-model backend rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(BackendError):
    """Rate limiting, server errors and network faults. Worth retrying."""


class NonRetryableBackendError(BackendError):
    """Authentication and request validation faults."""


class MatcherExhausted(MatcherError):
    """Every retry attempt failed with a transient error."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"LLM failed after {attempts} attempts: {detail}")
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "MatcherError",
    "InvalidInput",
    "BackendError",
    "TransientBackendError",
    "NonRetryableBackendError",
    "MatcherExhausted",
]
