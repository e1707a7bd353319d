"""Tests for session snapshot persistence."""

from __future__ import annotations

import json

from inconsistency_finder.domain.findings import ErrorRecord, Finding, Suggestion
from inconsistency_finder.infrastructure.session_store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionSnapshot,
)


def _results() -> list:
    return [
        Finding(concept="Azure Sword", priority="HIGH", is_new=True),
        ErrorRecord(error="boom"),
    ]


class TestSessionSnapshot:

    def test_to_dict_shape(self) -> None:
        data = SessionSnapshot(_results(), 123, "gemini-2.5-flash", 0.5).to_dict()
        assert data["timestamp"] == 123
        assert data["config"] == {"model": "gemini-2.5-flash", "temperature": 0.5}
        assert data["results"][0]["isNew"] is True
        assert data["results"][1] == {"error": "boom"}

    def test_from_dict_discriminates_items(self) -> None:
        snapshot = SessionSnapshot.from_dict(SessionSnapshot(_results(), 1).to_dict())
        assert isinstance(snapshot.results[0], Finding)
        assert isinstance(snapshot.results[1], ErrorRecord)

    def test_from_dict_drops_unreadable_results(self) -> None:
        snapshot = SessionSnapshot.from_dict({
            "results": [{"concept": "A"}, {"concept": "B", "variations": "bad"}, "junk"],
        })
        assert [r.concept for r in snapshot.results] == ["A"]
        assert snapshot.model == ""
        assert snapshot.temperature is None

    def test_from_dict_sanitizes(self) -> None:
        snapshot = SessionSnapshot.from_dict({
            "results": [{
                "concept": "A",
                "suggestions": [{"display_text": "Standardize to 'Alpha'"}],
            }],
        })
        suggestion = snapshot.results[0].suggestions[0]
        assert suggestion == Suggestion(
            display_text="Standardize to 'Alpha'",
            suggestion="Alpha",
            reasoning="AI-generated suggestion",
        )


class TestInMemorySessionStore:

    def test_empty(self) -> None:
        assert InMemorySessionStore().load() is None

    def test_save_load_clear(self) -> None:
        store = InMemorySessionStore()
        saved = store.save(_results(), model="m", temperature=0.2)
        loaded = store.load()
        assert loaded is not None
        assert loaded.results == saved.results
        assert loaded.model == "m"
        assert loaded.timestamp > 0
        store.clear()
        assert store.load() is None


class TestJsonFileSessionStore:

    def test_round_trip(self, tmp_path) -> None:
        path = tmp_path / "out" / "session.json"
        store = JsonFileSessionStore(path)
        store.save(_results(), model="m", temperature=0.7)

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert set(raw) == {"results", "timestamp", "config"}

        loaded = store.load()
        assert loaded is not None
        assert loaded.results[0].concept == "Azure Sword"
        assert loaded.temperature == 0.7

    def test_missing_and_corrupt(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        store = JsonFileSessionStore(path)
        assert store.load() is None
        path.write_text("{oops", encoding="utf-8")
        assert store.load() is None

    def test_clear(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        store = JsonFileSessionStore(path)
        store.save([])
        store.clear()
        assert not path.exists()
        store.clear()
