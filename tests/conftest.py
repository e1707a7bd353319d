"""Shared fixtures for the Inconsistency Finder test suite."""

from __future__ import annotations

from typing import Any

import pytest

from inconsistency_finder.domain.values import Chapter
from inconsistency_finder.infrastructure.event_bus import EventBus, EventStore

START_MS = 1_700_000_000_000


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordedSleep:
    """Async sleep that records requested delays and advances a FakeClock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(int(seconds * 1000))


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordedSleep:
    """A sleep function that never waits."""
    return RecordedSleep(clock)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@pytest.fixture
def event_bus() -> EventBus:
    """A fresh event bus."""
    return EventBus()


@pytest.fixture
def event_store(event_bus: EventBus) -> EventStore:
    """An event store recording everything published on ``event_bus``."""
    store = EventStore()
    event_bus.subscribe_all(store.append)
    return store


# ---------------------------------------------------------------------------
# Findings and chapters
# ---------------------------------------------------------------------------


def make_finding(
    concept: str,
    priority: str = "HIGH",
    variations: list[tuple[str, str]] | None = None,
    suggestion: str | None = None,
) -> dict[str, Any]:
    """Raw finding dict in the shape the model returns."""
    if variations is None:
        variations = [(concept, "1"), (f"{concept}'s variant", "2")]
    target = suggestion or concept
    return {
        "concept": concept,
        "priority": priority,
        "explanation": f"{concept} is translated in more than one way.",
        "suggestions": [
            {
                "display_text": f"Standardize to '{target}'",
                "suggestion": target,
                "reasoning": "Most frequent rendering.",
                "is_recommended": True,
            }
        ],
        "variations": [
            {"phrase": phrase, "chapter": chapter, "context_snippet": f"... {phrase} ..."}
            for phrase, chapter in variations
        ],
    }


@pytest.fixture
def finding_factory():
    """Factory for raw finding dicts."""
    return make_finding


@pytest.fixture
def chapters() -> list[Chapter]:
    """Two short chapters."""
    return [
        Chapter("1", "Li Fuchen drew the Azure Cloud Sword."),
        Chapter("2", "Li Fu Chen raised the Azure Sky Sword."),
    ]
