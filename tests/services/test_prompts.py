"""Tests for prompt construction and context preparation."""

from __future__ import annotations

import logging

import pytest

from inconsistency_finder.domain.findings import ErrorRecord, Finding, Variation
from inconsistency_finder.domain.values import Chapter
from inconsistency_finder.services.prompts import (
    FINDING_SCHEMA,
    PromptBuilder,
    is_valid_for_context,
    summarize_context,
)


def _valid(concept: str, priority: str = "HIGH") -> Finding:
    return Finding(
        concept=concept,
        priority=priority,
        explanation="inconsistent",
        variations=[Variation(phrase=concept, chapter="1", context_snippet="...")],
    )


class TestContextValidation:

    def test_valid(self) -> None:
        assert is_valid_for_context(_valid("Sword"))

    @pytest.mark.parametrize(
        "finding",
        [
            Finding(concept="", explanation="x", variations=[Variation(phrase="a", chapter="1", context_snippet="s")]),
            Finding(concept="A", explanation=" ", variations=[Variation(phrase="a", chapter="1", context_snippet="s")]),
            Finding(concept="A", explanation="x"),
            Finding(concept="A", explanation="x", variations=[Variation(phrase="a", chapter="", context_snippet="s")]),
            Finding(concept="A", explanation="x", variations=[Variation(phrase="a", chapter="1")]),
        ],
    )
    def test_invalid(self, finding: Finding) -> None:
        assert not is_valid_for_context(finding)

    def test_error_record_invalid(self) -> None:
        assert not is_valid_for_context(ErrorRecord(error="x"))


class TestSummarizeContext:

    def test_under_limit_unchanged(self) -> None:
        findings = [_valid("A"), _valid("B")]
        assert summarize_context(findings, limit=5) == findings

    def test_over_limit_keeps_best(self, caplog: pytest.LogCaptureFixture) -> None:
        findings = [_valid(f"Low {i}", "LOW") for i in range(4)] + [_valid("Top", "CRITICAL")]
        with caplog.at_level(logging.INFO, logger="inconsistency_finder.services.prompts"):
            summarized = summarize_context(findings, limit=2)

        assert len(summarized) == 3
        assert summarized[0].concept == "Top"
        placeholder = summarized[-1]
        assert placeholder.concept == "[3 Additional Items Summarized]"
        assert placeholder.priority == "INFO"
        assert placeholder.suggestions == [] and placeholder.variations == []
        assert "5 items reduced to 2" in caplog.text


class TestPromptBuilder:

    def test_combine_chapters(self) -> None:
        combined = PromptBuilder.combine_chapters([Chapter("1", "a"), Chapter("2", "b")])
        assert combined == "--- CHAPTER 1 ---\na\n\n--- CHAPTER 2 ---\nb"

    def test_initial_prompt(self) -> None:
        prompt = PromptBuilder().build("--- CHAPTER 1 ---\nLi Fuchen smiled.")
        assert "Li Fuchen smiled." in prompt
        assert "JSON array" in prompt
        assert FINDING_SCHEMA in prompt
        assert "verified_inconsistencies" not in prompt

    def test_verification_prompt(self) -> None:
        prompt = PromptBuilder().build("text", [_valid("Azure Sword"), ErrorRecord(error="x")])
        assert "verified_inconsistencies" in prompt
        assert "new_inconsistencies" in prompt
        assert '"concept": "Azure Sword"' in prompt
        assert "Previously identified inconsistencies" in prompt

    def test_verification_prompt_when_all_context_invalid(self, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="inconsistency_finder.services.prompts"):
            prompt = PromptBuilder().build("text", [Finding(concept="A")])
        assert "verified_inconsistencies" in prompt
        assert "All prior results failed validation" in caplog.text

    def test_context_limit_applied(self) -> None:
        prior = [_valid("Alpha"), _valid("Beta"), _valid("Gamma")]
        prompt = PromptBuilder(context_limit=2).build("text", prior)
        assert "[1 Additional Items Summarized]" in prompt

    def test_non_ascii_kept_readable(self) -> None:
        prompt = PromptBuilder().build("text", [_valid("李富辰")])
        assert "李富辰" in prompt

    def test_payload(self) -> None:
        payload = PromptBuilder.build_payload("hello", 0.3)
        assert payload == {
            "contents": [{"parts": [{"text": "hello"}]}],
            "generationConfig": {"temperature": 0.3},
        }
