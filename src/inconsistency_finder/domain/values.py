"""Value objects for the Inconsistency Finder.

All types here are frozen dataclasses -- immutable, compared by value.
They describe credential state snapshots, chapter input, and the two shapes
a parsed model response can take.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Union

from .enums import KeyStatus, ResponseKind
from .findings import Finding


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# KeyState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KeyState:
    """Persisted lifecycle state of one API credential.

    ``unlock_time`` is meaningful only while the key is ``ON_COOLDOWN`` or
    ``EXHAUSTED``.  ``last_reset`` records when an ``EXHAUSTED`` key entered
    its daily quota window.  The persisted form uses camelCase field names so
    existing state files stay readable.
    """

    status: KeyStatus = KeyStatus.AVAILABLE
    unlock_time: int | None = None
    failure_count: int = 0
    last_used: int | None = None
    last_reset: int | None = None

    @property
    def is_available(self) -> bool:
        return self.status is KeyStatus.AVAILABLE

    def is_due(self, now: int) -> bool:
        """True if a cooldown or exhaustion window has elapsed at *now*."""
        return (
            self.status in (KeyStatus.ON_COOLDOWN, KeyStatus.EXHAUSTED)
            and self.unlock_time is not None
            and now >= self.unlock_time
        )

    def evolve(self, **changes: Any) -> KeyState:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status.value,
            "unlockTime": self.unlock_time,
            "failureCount": self.failure_count,
        }
        if self.last_used is not None:
            data["lastUsed"] = self.last_used
        if self.last_reset is not None:
            data["lastReset"] = self.last_reset
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> KeyState:
        try:
            status = KeyStatus(data.get("status", KeyStatus.AVAILABLE.value))
        except ValueError:
            status = KeyStatus.AVAILABLE
        return cls(
            status=status,
            unlock_time=_optional_int(data.get("unlockTime")),
            failure_count=int(data.get("failureCount") or 0),
            last_used=_optional_int(data.get("lastUsed")),
            last_reset=_optional_int(data.get("lastReset")),
        )


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


@dataclass(frozen=True)
class AcquiredKey:
    """A credential handed out by the key pool for one request."""

    key: str
    index: int
    state: KeyState = field(default_factory=KeyState)

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks.
        return f"AcquiredKey(index={self.index}, status={self.state.status.value})"


# ---------------------------------------------------------------------------
# Chapter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Chapter:
    """A unit of source text with an identifier that may be numeric or not."""

    chapter: str
    text: str

    def render(self) -> str:
        return f"--- CHAPTER {self.chapter} ---\n{self.text}"


def combine_chapters(chapters: list[Chapter] | tuple[Chapter, ...]) -> str:
    """Join chapters into the single text block sent to the model."""
    return "\n\n".join(chapter.render() for chapter in chapters)


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InitialResponse:
    """First-pass response: a flat list of findings."""

    findings: tuple[Finding, ...] = ()

    @property
    def kind(self) -> ResponseKind:
        return ResponseKind.INITIAL

    def flagged(self) -> list[Finding]:
        """Findings marked as new."""
        return [f.flagged(verified=False) for f in self.findings]


@dataclass(frozen=True)
class VerificationResponse:
    """Verification response: re-confirmed findings plus newly discovered ones."""

    verified: tuple[Finding, ...] = ()
    new: tuple[Finding, ...] = ()

    @property
    def kind(self) -> ResponseKind:
        return ResponseKind.VERIFICATION

    def flagged(self) -> list[Finding]:
        """Verified findings (status ``Verified``) followed by new ones."""
        return [f.flagged(verified=True) for f in self.verified] + [
            f.flagged(verified=False) for f in self.new
        ]


ResponseShape = Union[InitialResponse, VerificationResponse]
