"""Persistent storage for API key state.

Key state survives restarts so that a key that hit its daily quota stays
benched.  The persisted form is a JSON object keyed by the stringified key
index::

    {"0": {"status": "AVAILABLE", "unlockTime": null, "failureCount": 0}}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from inconsistency_finder.domain.values import KeyState

logger = logging.getLogger(__name__)


class KeyStateStore(ABC):
    """Load and save the full key-state mapping."""

    @abstractmethod
    def load(self) -> dict[int, KeyState]:
        """Return the stored mapping (empty if nothing was saved yet)."""

    @abstractmethod
    def save(self, states: dict[int, KeyState]) -> None:
        """Replace the stored mapping with *states*."""

    def clear(self) -> None:
        self.save({})


def encode_states(states: dict[int, KeyState]) -> dict[str, dict]:
    return {str(index): state.to_dict() for index, state in sorted(states.items())}


def decode_states(raw: object) -> dict[int, KeyState]:
    """Decode a persisted mapping, skipping entries that cannot be read."""
    if not isinstance(raw, dict):
        return {}
    states: dict[int, KeyState] = {}
    for index, data in raw.items():
        try:
            states[int(index)] = KeyState.from_dict(data)
        except (TypeError, ValueError, AttributeError):
            logger.warning("Ignoring unreadable state for key %s", index)
    return states


class InMemoryKeyStateStore(KeyStateStore):
    """Process-local store; state is lost on exit."""

    def __init__(self, initial: dict[int, KeyState] | None = None) -> None:
        self._states: dict[int, KeyState] = dict(initial or {})
        self._lock = threading.Lock()

    def load(self) -> dict[int, KeyState]:
        with self._lock:
            return dict(self._states)

    def save(self, states: dict[int, KeyState]) -> None:
        with self._lock:
            self._states = dict(states)


class JsonFileKeyStateStore(KeyStateStore):
    """JSON file store with atomic replace on save.

    Parameters
    ----------
    path:
        Target file.  Parent directories are created on first save.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> dict[int, KeyState]:
        with self._lock:
            if not self.path.exists():
                return {}
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Could not read key state from %s: %s", self.path, exc)
                return {}
        return decode_states(raw)

    def save(self, states: dict[int, KeyState]) -> None:
        payload = json.dumps(encode_states(states), indent=2)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".keys-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
