"""Tests for quality scoring and script-aware result merging."""

from __future__ import annotations

from inconsistency_finder.domain.findings import ErrorRecord, Finding, Suggestion, Variation
from inconsistency_finder.services.merger import ResultMerger, combine, merge_results, quality


def _finding(concept: str, priority: str = "HIGH", variations=(), **kwargs) -> Finding:
    return Finding(
        concept=concept,
        priority=priority,
        explanation="inconsistent",
        variations=[Variation(phrase=p, chapter=c, context_snippet="...") for p, c in variations],
        **kwargs,
    )


class TestQuality:

    def test_priority_variations_suggestions(self) -> None:
        finding = _finding(
            "Sword",
            variations=[("Sword", "1"), ("Blade", "2")],
            suggestions=[Suggestion(suggestion="Sword")],
        )
        assert quality(finding) == 80 + 10 + 3

    def test_flags(self) -> None:
        assert quality(_finding("Sword", status="Verified")) == 100
        assert quality(_finding("Sword", is_new=True)) == 70

    def test_blank_concept_penalty(self) -> None:
        assert quality(_finding("  ", priority="LOW")) == 10

    def test_unknown_priority_counts_as_info(self) -> None:
        assert quality(_finding("Sword", priority="URGENT")) == 10

    def test_priority_case_insensitive(self) -> None:
        assert quality(_finding("Sword", priority="high")) == 80
        assert quality(_finding("Sword", priority=" Critical ")) == 100


class TestMergeProperties:

    def test_merge_with_nothing_is_identity(self) -> None:
        existing = [
            _finding("Li Fuchen", variations=[("Li Fuchen", "1")]),
            _finding("li fuchen", priority="INFO"),
            ErrorRecord(error="earlier failure"),
        ]
        assert ResultMerger().merge(existing, []) == existing

    def test_script_gate_never_collapses(self) -> None:
        existing = [_finding("Li Fuchen", priority="CRITICAL", variations=[("Li Fuchen", "1")])]
        incoming = [_finding("李富辰", priority="CRITICAL", variations=[("李富辰", "2")])]
        merged = ResultMerger(threshold=0).merge(existing, incoming)
        assert [f.concept for f in merged] == ["Li Fuchen", "李富辰"]

    def test_mixed_script_kept_apart_from_unknown(self) -> None:
        existing = [_finding("123", priority="CRITICAL")]
        incoming = [_finding("123 李", priority="CRITICAL")]
        merged = ResultMerger(threshold=0).merge(existing, incoming)
        assert len(merged) == 2

    def test_variations_deduplicated(self) -> None:
        existing = [_finding("Azure Sword", variations=[("Azure Sword", "1"), ("Azure Blade", "2")])]
        incoming = [_finding("Azure Sword", variations=[("Azure Blade", "2"), ("Azure Saber", "3")])]
        merged = ResultMerger().merge(existing, incoming)

        assert len(merged) == 1
        keys = [(v.phrase, v.chapter) for v in merged[0].variations]
        assert keys == [("Azure Sword", "1"), ("Azure Blade", "2"), ("Azure Saber", "3")]
        assert len(keys) == len(set(keys))


class TestResultMerger:

    def test_unrelated_findings_appended(self) -> None:
        merged = merge_results([_finding("Azure Sword")], [_finding("Elder Mo")])
        assert [f.concept for f in merged] == ["Azure Sword", "Elder Mo"]

    def test_higher_quality_replaces(self) -> None:
        existing = [_finding("Elder Mo", priority="LOW")]
        incoming = [_finding("Elder Mo", priority="CRITICAL", status="Verified")]
        merged = ResultMerger().merge(existing, incoming)
        assert len(merged) == 1
        assert merged[0].priority == "CRITICAL"
        assert merged[0].is_verified

    def test_both_below_threshold_kept_separate(self) -> None:
        merged = ResultMerger().merge(
            [_finding("Minor Term", priority="INFO")],
            [_finding("Minor Term", priority="INFO")],
        )
        assert len(merged) == 2

    def test_threshold_is_configurable(self) -> None:
        merged = ResultMerger(threshold=5).merge(
            [_finding("Minor Term", priority="INFO")],
            [_finding("Minor Term", priority="INFO")],
        )
        assert len(merged) == 1

    def test_error_records(self) -> None:
        existing = [ErrorRecord(error="old")]
        merged = ResultMerger().merge(existing, [ErrorRecord(error="new"), _finding("Sword")])
        assert merged[0] == ErrorRecord(error="old")
        assert len(merged) == 2
        assert isinstance(merged[1], Finding)

    def test_inputs_not_mutated(self) -> None:
        existing = [_finding("Azure Sword", variations=[("Azure Sword", "1")])]
        incoming = [_finding("Azure Sword", variations=[("Azure Blade", "2")])]
        ResultMerger().merge(existing, incoming)
        assert len(existing) == 1
        assert len(existing[0].variations) == 1


class TestCombine:

    def test_flags_and_suggestions(self) -> None:
        existing = _finding(
            "Sword",
            is_new=True,
            suggestions=[Suggestion(suggestion="Sword", is_recommended=True)],
        )
        incoming = _finding(
            "Sword",
            is_new=False,
            status="Verified",
            suggestions=[
                Suggestion(suggestion="Sword", is_recommended=True),
                Suggestion(suggestion="Blade", is_recommended=True),
            ],
        )
        combined = combine(existing, incoming)
        assert combined.concept == "Sword"
        assert combined.status == "Verified"
        assert combined.is_new is False
        assert [s.suggestion for s in combined.suggestions] == ["Sword", "Blade"]
        assert [s.is_recommended for s in combined.suggestions] == [True, False]

    def test_new_only_when_both_new(self) -> None:
        combined = combine(_finding("Sword", is_new=True), _finding("Sword", is_new=True))
        assert combined.is_new is True
