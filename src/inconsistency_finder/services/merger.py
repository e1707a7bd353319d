"""Quality-scored, script-aware merging of findings across analysis rounds.

Wrongly merging two distinct terms silently destroys a finding the reader
needed to see, so every merge has to pass several gates: a similarity match,
a script compatibility check, and a minimum quality on at least one side.
Anything that fails a gate is kept as a separate entry.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from inconsistency_finder.domain.enums import Priority, ScriptCategory
from inconsistency_finder.domain.findings import Finding, ResultItem, with_single_recommendation
from inconsistency_finder.services.semantic import are_similar, detect_script

logger = logging.getLogger(__name__)

DEFAULT_MERGE_THRESHOLD = 40


def quality(finding: Finding) -> int:
    """Score a finding for merge conflict resolution and context ranking.

    Priority weight (CRITICAL=100 .. INFO=10, unknown counts as INFO), plus
    5 per variation and 3 per suggestion, +20 when verified, -10 when new,
    and -30 when the concept is blank.
    """
    priority = Priority.parse(finding.priority)
    score = priority.weight if priority is not None else Priority.INFO.weight
    score += 5 * len(finding.variations)
    score += 3 * len(finding.suggestions)
    if finding.is_verified:
        score += 20
    if finding.is_new:
        score -= 10
    if not finding.concept.strip():
        score -= 30
    return score


def _scripts_conflict(a: ScriptCategory, b: ScriptCategory) -> bool:
    known = ScriptCategory.UNKNOWN not in (a, b)
    if known and a is not b:
        return True
    return (a is ScriptCategory.MIXED) != (b is ScriptCategory.MIXED)


class ResultMerger:
    """Merge incoming findings into an existing result list.

    Parameters
    ----------
    threshold:
        Minimum quality at least one of two duplicate candidates must reach
        for them to be merged.
    """

    def __init__(self, threshold: int = DEFAULT_MERGE_THRESHOLD) -> None:
        self.threshold = threshold

    def merge(
        self,
        existing: Sequence[ResultItem],
        incoming: Sequence[ResultItem],
    ) -> list[ResultItem]:
        """Return *existing* with every finding in *incoming* folded in.

        The input sequences are not modified.  ``ErrorRecord`` entries in
        *incoming* are skipped; those in *existing* are carried through.
        """
        merged: list[ResultItem] = list(existing)
        for item in incoming:
            if not isinstance(item, Finding):
                continue
            self._fold(merged, item)
        return merged

    def _fold(self, merged: list[ResultItem], item: Finding) -> None:
        match = self._find_duplicate(merged, item)
        if match is None:
            merged.append(item)
            return

        index, current = match
        current_script = detect_script(current.concept)
        item_script = detect_script(item.concept)
        if _scripts_conflict(current_script, item_script):
            logger.debug(
                "Merge prevented by script conflict: %r [%s] vs %r [%s]",
                current.concept, current_script.value, item.concept, item_script.value,
            )
            merged.append(item)
            return

        current_quality, item_quality = quality(current), quality(item)
        if current_quality < self.threshold and item_quality < self.threshold:
            logger.debug(
                "Merge prevented: both candidates below quality threshold (%d, %d)",
                current_quality, item_quality,
            )
            merged.append(item)
            return

        if item_quality > current_quality:
            merged[index] = item
            logger.debug(
                "Replaced %r with higher quality %r (%d > %d)",
                current.concept, item.concept, item_quality, current_quality,
            )
        else:
            merged[index] = combine(current, item)
            logger.debug("Merged %r into existing %r", item.concept, current.concept)

    @staticmethod
    def _find_duplicate(
        merged: Sequence[ResultItem], item: Finding
    ) -> tuple[int, Finding] | None:
        for index, candidate in enumerate(merged):
            if isinstance(candidate, Finding) and candidate.concept:
                if are_similar(candidate.concept, item.concept):
                    return index, candidate
        return None


def combine(existing: Finding, incoming: Finding) -> Finding:
    """Fold *incoming* into *existing*, keeping the existing identity fields.

    Variations are unioned by ``(phrase, chapter)`` and suggestions by their
    ``suggestion`` text, first occurrence wins.
    """
    variations = []
    seen_variations: set[tuple[str, str]] = set()
    for variation in [*existing.variations, *incoming.variations]:
        key = (variation.phrase, variation.chapter)
        if key not in seen_variations:
            seen_variations.add(key)
            variations.append(variation)

    suggestions = []
    seen_suggestions: set[str] = set()
    for suggestion in [*existing.suggestions, *incoming.suggestions]:
        if suggestion.suggestion not in seen_suggestions:
            seen_suggestions.add(suggestion.suggestion)
            suggestions.append(suggestion)

    return existing.model_copy(
        update={
            "variations": variations,
            "suggestions": with_single_recommendation(suggestions),
            "status": existing.status or incoming.status,
            "is_new": existing.is_new and incoming.is_new,
        }
    )


def merge_results(
    existing: Sequence[ResultItem],
    incoming: Sequence[ResultItem],
    threshold: int = DEFAULT_MERGE_THRESHOLD,
) -> list[ResultItem]:
    """Functional shortcut for ``ResultMerger(threshold).merge(...)``."""
    return ResultMerger(threshold).merge(existing, incoming)
