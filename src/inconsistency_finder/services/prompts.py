"""Prompt construction for analysis requests.

``PromptBuilder`` turns chapter text and optional prior findings into the
prompt string and the Gemini request payload.  With prior findings the prompt
asks for a verification response::

    {"verified_inconsistencies": [...], "new_inconsistencies": [...]}

without them, for a bare JSON array of findings.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.prompts import PromptTemplate

from inconsistency_finder.domain.findings import Finding, ResultItem
from inconsistency_finder.domain.values import Chapter, combine_chapters
from inconsistency_finder.services.merger import quality

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LIMIT = 30


# -- Prompt text ---------------------------------------------------------------

SYSTEM_INSTRUCTIONS = """\
You are a translation consistency editor for machine-translated web novels. \
Find terms (character names, places, items, abilities, titles, organizations) \
that are translated inconsistently across the chapters below, and propose how \
to standardize each one.

## Do not flag
- Onomatopoeia, emotional vocalizations and casual internet expressions.
- Author or translator notes.
- Intentional aliases, nicknames, usernames of the same character, and terms \
that evolve at a clear point in the story (flag those as INFO at most).
- Differences in quotation style only (straight, single or smart quotes).
- Systematic chapter-heading numbering offsets produced by the site template.

## Priorities
- CRITICAL: main characters, core concepts in chapter titles, root terms that \
cause dependent inconsistencies.
- HIGH: important secondary characters, key locations, recurring abilities \
inconsistent in recent chapters.
- MEDIUM: supporting elements or less frequent inconsistencies.
- LOW: minor background elements and one-off variations.
- STYLISTIC: username formatting, honorifics and other localization choices.
- INFO: alias clusters and nuance notes.

## Rules
- Each distinct entity is its own concept; never group unrelated terms.
- Give a short context snippet for every variation, with the chapter id as a \
string.
- Offer up to three suggestions per concept and mark exactly one with \
"is_recommended": true.
- The "suggestion" field holds only the replacement text, never phrases such \
as "Standardize to".
- Use plain text in every field; no markdown.
- Base every detection on the provided text only."""

FINDING_SCHEMA = """\
{
  "concept": "The core concept or inferred original term.",
  "priority": "CRITICAL | HIGH | MEDIUM | LOW | STYLISTIC | INFO",
  "explanation": "A brief explanation of the inconsistency.",
  "suggestions": [
    {
      "display_text": "User-facing description, e.g. Standardize to 'Term A'.",
      "suggestion": "The exact replacement text, e.g. Term A.",
      "reasoning": "Why this suggestion fits.",
      "is_recommended": true
    }
  ],
  "variations": [
    {
      "phrase": "The variant phrase found.",
      "chapter": "The chapter id as a string.",
      "context_snippet": "A snippet showing the context."
    }
  ]
}"""

VERIFICATION_TASK = """\
## Verification and continuation
A previous pass reported the inconsistencies listed below. The text may have \
been corrected since then, so judge only the text above.
1. Re-scan the text for every listed concept. If it is still a genuine, \
unintentional inconsistency, build a fresh object for it (do not copy the old \
variations or priority) and put it in "verified_inconsistencies".
2. Omit concepts that turned out to be aliases, nuance, term evolutions, \
corrected text or false positives.
3. Put inconsistencies that were not on the list into "new_inconsistencies"."""

_INITIAL_PROMPT = PromptTemplate.from_template(
    "{instructions}\n\n"
    "Here is the text to analyze:\n---\n{chapter_text}\n---\n\n"
    "Respond with a single JSON array of objects following this schema, "
    "and nothing else:\n{schema}"
)

_VERIFICATION_PROMPT = PromptTemplate.from_template(
    "{instructions}\n\n"
    "Here is the text to analyze:\n---\n{chapter_text}\n---\n\n"
    "{task}\n\n"
    "Previously identified inconsistencies:\n```json\n{existing}\n```\n\n"
    "Respond with a single JSON object with exactly two keys, "
    '"verified_inconsistencies" and "new_inconsistencies". Each is an array '
    "of objects following this schema (use [] when empty), and nothing else:\n"
    "{schema}"
)


# -- Context preparation -------------------------------------------------------


def is_valid_for_context(item: ResultItem) -> bool:
    """Return ``True`` if *item* is complete enough to show the model again."""
    if not isinstance(item, Finding):
        return False
    if not item.concept.strip() or not item.explanation.strip():
        return False
    if not item.variations:
        return False
    return all(
        v.phrase.strip() and v.chapter.strip() and v.context_snippet
        for v in item.variations
    )


def summarize_context(findings: Sequence[Finding], limit: int = DEFAULT_CONTEXT_LIMIT) -> list[Finding]:
    """Keep the *limit* highest-quality findings and collapse the rest.

    The remainder is replaced by a single ``INFO`` placeholder so the model
    still knows more items existed.
    """
    if len(findings) <= limit:
        return list(findings)

    ranked = sorted(findings, key=quality, reverse=True)
    remainder = len(findings) - limit
    placeholder = Finding(
        concept=f"[{remainder} Additional Items Summarized]",
        priority="INFO",
        explanation=(
            f"Additional {remainder} items from previous analysis are summarized. "
            "Focus verification on the detailed items below."
        ),
    )
    logger.info(
        "Context summarization: %d items reduced to %d detailed + 1 summarized",
        len(findings), limit,
    )
    return [*ranked[:limit], placeholder]


# -- Builder -------------------------------------------------------------------


class PromptBuilder:
    """Build prompts and request payloads.

    Parameters
    ----------
    context_limit:
        Maximum number of prior findings included verbatim.
    """

    def __init__(self, context_limit: int = DEFAULT_CONTEXT_LIMIT) -> None:
        self.context_limit = context_limit

    @staticmethod
    def combine_chapters(chapters: Sequence[Chapter]) -> str:
        return combine_chapters(list(chapters))

    def prepare_context(self, prior_results: Sequence[ResultItem]) -> list[Finding]:
        """Filter *prior_results* to valid findings and cap their number."""
        valid = [item for item in prior_results if is_valid_for_context(item)]
        dropped = len(prior_results) - len(valid)
        if dropped:
            logger.debug("Filtered %d invalid result(s) out of the context", dropped)
        if prior_results and not valid:
            logger.info("All prior results failed validation; prompting without context")
        return summarize_context(valid, self.context_limit)

    def build(self, combined_text: str, prior_results: Sequence[ResultItem] = ()) -> str:
        """Return the prompt for *combined_text*.

        A verification prompt is produced whenever *prior_results* is
        non-empty, even if every item is filtered out of the context, so the
        requested shape always matches what the response parser expects.
        """
        if not prior_results:
            return _INITIAL_PROMPT.format(
                instructions=SYSTEM_INSTRUCTIONS,
                chapter_text=combined_text,
                schema=FINDING_SCHEMA,
            )

        context = self.prepare_context(prior_results)
        existing = json.dumps(
            [
                {
                    "concept": f.concept,
                    "explanation": f.explanation,
                    "variations": [v.model_dump() for v in f.variations],
                }
                for f in context
            ],
            indent=2,
            ensure_ascii=False,
        )
        return _VERIFICATION_PROMPT.format(
            instructions=SYSTEM_INSTRUCTIONS,
            chapter_text=combined_text,
            task=VERIFICATION_TASK,
            existing=existing,
            schema=FINDING_SCHEMA,
        )

    @staticmethod
    def build_payload(prompt: str, temperature: float) -> dict[str, Any]:
        """Wrap *prompt* in the ``generateContent`` request body."""
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }
