"""Domain exceptions for the Inconsistency Finder.

All domain-specific exceptions inherit from ``InconsistencyFinderError`` so
callers can catch the full family with a single ``except`` clause when needed.
Each class carries a ``retriable`` flag; the orchestrator funnels retriable
failures through the retry scheduler and everything else through its single
terminal error path.
"""

from __future__ import annotations

from typing import Any

from .enums import ErrorClassification

RETRIABLE_STATUSES = frozenset({
    "RESOURCE_EXHAUSTED",
    "INTERNAL",
    "UNAVAILABLE",
    "DEADLINE_EXCEEDED",
})

OVERLOAD_MARKER = "overloaded"


class InconsistencyFinderError(Exception):
    """Base exception for all Inconsistency Finder errors."""

    retriable: bool = False

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class TransportError(InconsistencyFinderError):
    """Raised when the request never produced a response (network level).

    Always retriable: the next attempt usually goes out on another key.
    """

    retriable = True

    def __init__(
        self,
        message: str = "Network error",
        key_index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.key_index = key_index


class ShellParseError(InconsistencyFinderError):
    """Raised when the outer HTTP body is not valid JSON.

    Treated as transient (truncated or garbled transfer) and retried.
    """

    retriable = True


class ProviderError(InconsistencyFinderError):
    """Structured ``{error: {status, message}}`` returned by the provider."""

    def __init__(
        self,
        message: str = "",
        status: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status = status or "UNKNOWN"
        self.provider_message = message

    @property
    def retriable(self) -> bool:  # type: ignore[override]
        return (
            self.status in RETRIABLE_STATUSES
            or OVERLOAD_MARKER in self.provider_message.lower()
        )

    @property
    def classification(self) -> ErrorClassification:
        """Map the provider status onto a key-cooldown classification."""
        try:
            return ErrorClassification(self.status)
        except ValueError:
            return ErrorClassification.UNKNOWN

    def __str__(self) -> str:
        return f"API Error (Status: {self.status}): {self.provider_message}"


class ContentParseError(InconsistencyFinderError):
    """Raised when the model's own text is not parseable JSON.

    Retriable exactly once per iteration; the orchestrator tracks the count.
    """

    retriable = True


class FormatError(InconsistencyFinderError):
    """Raised when a response does not have the expected shape.

    Covers missing content (including truncation at ``MAX_TOKENS``) and
    schema mismatches between verification and initial runs.  Never retried:
    asking again cannot fix the input size or the model's chosen schema.
    """

    def __init__(
        self,
        message: str = "Invalid response format",
        finish_reason: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.finish_reason = finish_reason


class ExhaustionError(InconsistencyFinderError):
    """Raised when no credential is usable right now.

    Terminal for the current run, but the caller can recover by waiting for
    cooldowns to elapse.
    """

    def __init__(
        self,
        message: str = (
            "All API keys are currently rate-limited or failing. "
            "Please wait a moment before trying again."
        ),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)


class BudgetExceededError(InconsistencyFinderError):
    """Raised when the attempt ceiling or the wall-clock ceiling is hit."""

    def __init__(
        self,
        message: str = "Retry budget exceeded",
        operation: str = "",
        attempts: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.attempts = attempts


def friendly_error_message(status: str, message: str = "") -> str:
    """Return a user-facing explanation for a provider status code."""
    if status == "RESOURCE_EXHAUSTED":
        return "API rate limit exceeded. Please wait 24 hours before trying again."
    if status == "UNAVAILABLE":
        return (
            "Gemini API service is temporarily unavailable. "
            "Please try again in a few minutes."
        )
    if status == "INTERNAL":
        return "Gemini API is experiencing internal server issues. Please try again later."
    if status == "DEADLINE_EXCEEDED":
        return "Request timed out. The text may be too long. Try analyzing fewer chapters."
    if status == "MAX_TOKENS":
        return (
            "Analysis failed: The text from the selected chapters is too long. "
            "Please try again with fewer chapters."
        )
    return f"API Error: {message or 'Unknown error occurred'}"
