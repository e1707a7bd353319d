"""Session result persistence.

A session snapshot stores the cumulative results of the last analysis so a
later run can continue from them::

    {"results": [...], "timestamp": 1700000000000,
     "config": {"model": "gemini-2.5-flash", "temperature": 0.5}}

Restored results are passed through ``sanitize_results`` so that suggestions
saved by older versions are repaired on load.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from inconsistency_finder.domain.findings import (
    ResultItem,
    result_from_dict,
    results_to_dicts,
    sanitize_results,
)
from inconsistency_finder.domain.values import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Results of one saved session."""

    results: list[ResultItem] = field(default_factory=list)
    timestamp: int = 0
    model: str = ""
    temperature: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": results_to_dicts(self.results),
            "timestamp": self.timestamp,
            "config": {"model": self.model, "temperature": self.temperature},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSnapshot:
        items: list[ResultItem] = []
        for raw in data.get("results") or []:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(result_from_dict(raw))
            except ValidationError as exc:
                logger.warning("Dropping unreadable stored result: %s", exc)
        config = data.get("config") or {}
        return cls(
            results=sanitize_results(items),
            timestamp=int(data.get("timestamp") or 0),
            model=str(config.get("model") or ""),
            temperature=config.get("temperature"),
        )


class SessionStore(ABC):
    """Save and restore the latest session snapshot."""

    @abstractmethod
    def save(
        self,
        results: Sequence[ResultItem],
        model: str = "",
        temperature: float | None = None,
    ) -> SessionSnapshot:
        """Persist *results* and return the stored snapshot."""

    @abstractmethod
    def load(self) -> SessionSnapshot | None:
        """Return the stored snapshot, or ``None`` if there is none."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored snapshot."""


class InMemorySessionStore(SessionStore):
    """Keeps the snapshot in its serialized form, like a browser session."""

    def __init__(self) -> None:
        self._data: dict[str, Any] | None = None
        self._lock = threading.Lock()

    def save(self, results, model="", temperature=None) -> SessionSnapshot:
        snapshot = SessionSnapshot(list(results), now_ms(), model, temperature)
        with self._lock:
            self._data = snapshot.to_dict()
        return snapshot

    def load(self) -> SessionSnapshot | None:
        with self._lock:
            data = self._data
        return SessionSnapshot.from_dict(data) if data is not None else None

    def clear(self) -> None:
        with self._lock:
            self._data = None


class JsonFileSessionStore(SessionStore):
    """Stores the snapshot as a JSON file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def save(self, results, model="", temperature=None) -> SessionSnapshot:
        snapshot = SessionSnapshot(list(results), now_ms(), model, temperature)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
        logger.debug("Saved %d result(s) to %s", len(snapshot.results), self.path)
        return snapshot

    def load(self) -> SessionSnapshot | None:
        with self._lock:
            if not self.path.exists():
                return None
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Could not read session from %s: %s", self.path, exc)
                return None
        if not isinstance(data, dict):
            return None
        snapshot = SessionSnapshot.from_dict(data)
        logger.info("Session results loaded: %d item(s)", len(snapshot.results))
        return snapshot

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)
