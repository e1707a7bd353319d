"""Domain events for the Inconsistency Finder.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
orchestrator, key pool and retry scheduler publish events; the CLI and any
other host subscribe to them to drive their status display.

All events carry a ``timestamp`` and a ``source_id`` identifying the
originating component.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import KeyStatus, RunStatus

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Status channel
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatusChanged(DomainEvent):
    """The caller-visible run status changed."""

    state: RunStatus = RunStatus.RUNNING
    message: str = ""


@dataclass(frozen=True)
class AnalysisFinished(DomainEvent):
    """A run ended, successfully or not."""

    state: RunStatus = RunStatus.COMPLETE
    result_count: int = 0
    message: str = ""


@dataclass(frozen=True)
class IterationCompleted(DomainEvent):
    """One deep-analysis iteration was merged into the cumulative results."""

    iteration: int = 0
    total: int = 0
    verified: int = 0
    new: int = 0
    cumulative: int = 0


# ---------------------------------------------------------------------------
# Credentials and retries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KeyStateChanged(DomainEvent):
    """A credential moved between lifecycle states."""

    index: int = 0
    status: KeyStatus = KeyStatus.AVAILABLE
    unlock_time: int | None = None
    failure_count: int = 0


@dataclass(frozen=True)
class RetryScheduled(DomainEvent):
    """A failed attempt was queued for another try."""

    operation: str = ""
    attempt: int = 0
    delay_ms: int = 0
