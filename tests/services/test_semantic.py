"""Tests for script detection and concept similarity."""

from __future__ import annotations

import pytest

from inconsistency_finder.domain.enums import ScriptCategory
from inconsistency_finder.services.semantic import (
    are_similar,
    detect_script,
    is_proper_name_like,
    normalize,
)


class TestDetectScript:

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Li Fuchen", ScriptCategory.LATIN),
            ("Élodie", ScriptCategory.LATIN),
            ("李富辰", ScriptCategory.CJK),
            ("ひらがな", ScriptCategory.CJK),
            ("Иван Петров", ScriptCategory.CYRILLIC),
            ("Li 李富辰", ScriptCategory.MIXED),
            ("Li★", ScriptCategory.MIXED),
            ("123 (!)", ScriptCategory.UNKNOWN),
            ("★★", ScriptCategory.UNKNOWN),
            ("이현", ScriptCategory.UNKNOWN),
            ("Αλέξανδρος", ScriptCategory.UNKNOWN),
            ("", ScriptCategory.UNKNOWN),
            (None, ScriptCategory.UNKNOWN),
        ],
    )
    def test_categories(self, text, expected: ScriptCategory) -> None:
        assert detect_script(text) is expected

    def test_digits_and_punctuation_are_neutral(self) -> None:
        assert detect_script("Chapter 12: The Sword!") is ScriptCategory.LATIN

    def test_unrecognized_scripts_never_merge_with_latin(self) -> None:
        assert not are_similar("이현", "Lee Hyun")
        assert not are_similar("Αλέξανδρος", "Alexandros")
        assert are_similar("이현", "이현")
        assert not are_similar("이현", "이현우")


class TestHelpers:

    def test_normalize(self) -> None:
        assert normalize("  Li Fu-Chen! ") == "li fuchen"
        assert normalize("李富辰") == ""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Fuchen", True),
            ("Li Fuchen", True),
            ("sword qi", False),
            ("Li fuchen", False),
            ("X", False),
            (42, False),
        ],
    )
    def test_proper_name_like(self, text, expected: bool) -> None:
        assert is_proper_name_like(text) is expected


class TestAreSimilar:

    def test_blank_never_similar(self) -> None:
        assert not are_similar("", "Sword")
        assert not are_similar(None, "Sword")

    def test_different_scripts_blocked(self) -> None:
        assert not are_similar("Li Fuchen", "李富辰")
        assert not are_similar("Li Fuchen", "Ли Фучен")

    def test_normalized_equality(self) -> None:
        assert are_similar("Li Fuchen", "li fuchen")
        assert are_similar("Qi", "qi")

    def test_non_latin_exact_only(self) -> None:
        assert are_similar("李富辰", " 李富辰 ")
        assert not are_similar("李富辰", "李辰")

    def test_short_strings_exact_only(self) -> None:
        assert not are_similar("Qi", "Qin")

    def test_proper_name_mismatch_blocked(self) -> None:
        assert not are_similar("Azure Cloud Sword", "azure cloud sword technique")

    def test_containment(self) -> None:
        assert are_similar("Fuchen", "Li Fuchen")

    def test_token_overlap(self) -> None:
        assert are_similar("the nine heavens sword art", "nine heavens sword art technique")

    def test_weak_overlap_rejected(self) -> None:
        assert not are_similar("ancient sword sect hall", "ancient sword sect palace")
