"""Finding schemas for model output.

Findings are pydantic models so that the loosely-typed JSON returned by the
model is validated and coerced in one place.  Unknown keys are preserved
(``extra="allow"``) so that fields added by newer prompts survive a round
trip through the merger and the session store.

A result sequence may also contain ``ErrorRecord`` entries: terminal failures
are appended to the cumulative results instead of replacing them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

VERIFIED = "Verified"


def _coerce_text(value: Any) -> Any:
    """Accept ``None`` and bare numbers where the model should send strings."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# -- Finding components -----------------------------------------------------


class Variation(BaseModel):
    """One occurrence of a concept in the source text."""

    model_config = ConfigDict(extra="allow")

    phrase: str = Field(default="", description="The exact wording used")
    chapter: str = Field(default="", description="Chapter the phrase appears in")
    context_snippet: str = Field(default="", description="Surrounding sentence")

    @field_validator("phrase", "chapter", "context_snippet", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _coerce_text(value)


class Suggestion(BaseModel):
    """A proposed fix for a finding."""

    model_config = ConfigDict(extra="allow")

    display_text: str = Field(default="", description="Short label shown to the user")
    suggestion: str = Field(default="", description="Replacement text or instruction")
    reasoning: str = Field(default="", description="Why this fix is appropriate")
    is_recommended: bool | None = Field(
        default=None,
        description="Whether this is the preferred fix",
    )

    @field_validator("display_text", "suggestion", "reasoning", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _coerce_text(value)


class Finding(BaseModel):
    """A single inconsistency reported by the model.

    ``is_new`` is serialized as ``isNew`` to stay compatible with stored
    sessions; ``status`` is ``"Verified"`` for findings the model re-confirmed.
    At most one suggestion per finding carries ``is_recommended``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    concept: str = Field(default="", description="The entity or idea that is inconsistent")
    priority: str = Field(default="", description="CRITICAL, HIGH, MEDIUM, LOW, STYLISTIC or INFO")
    explanation: str = Field(default="", description="Why this is an inconsistency")
    suggestions: list[Suggestion] = Field(default_factory=list)
    variations: list[Variation] = Field(default_factory=list)
    is_new: bool = Field(default=False, alias="isNew")
    status: str | None = None

    @field_validator("concept", "priority", "explanation", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _coerce_text(value)

    @field_validator("suggestions", "variations", mode="before")
    @classmethod
    def drop_malformed(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, (Mapping, BaseModel))]
        logger.debug("Discarding non-list %s value: %r", info.field_name, value)
        return []

    @model_validator(mode="after")
    def single_recommendation(self) -> Finding:
        self.suggestions = with_single_recommendation(self.suggestions)
        return self

    @property
    def is_verified(self) -> bool:
        return self.status == VERIFIED

    def flagged(self, *, verified: bool) -> Finding:
        """Return a copy marked as re-confirmed (``verified``) or new."""
        if verified:
            return self.model_copy(update={"is_new": False, "status": VERIFIED})
        return self.model_copy(update={"is_new": True})

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorRecord(BaseModel):
    """Terminal failure appended to the cumulative results."""

    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error}


ResultItem = Union[Finding, ErrorRecord]


def with_single_recommendation(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Clear ``is_recommended`` on every suggestion after the first flagged one."""
    seen = False
    out: list[Suggestion] = []
    for suggestion in suggestions:
        if suggestion.is_recommended:
            if seen:
                suggestion = suggestion.model_copy(update={"is_recommended": False})
            seen = True
        out.append(suggestion)
    return out


def result_from_dict(data: Mapping[str, Any]) -> ResultItem:
    """Build a ``Finding`` or ``ErrorRecord`` from its dict form."""
    if "error" in data and "concept" not in data:
        return ErrorRecord(error=str(data["error"]))
    return Finding.model_validate(dict(data))


def results_to_dicts(results: Iterable[ResultItem]) -> list[dict[str, Any]]:
    return [item.to_dict() for item in results]


def findings_only(results: Iterable[ResultItem]) -> list[Finding]:
    return [item for item in results if isinstance(item, Finding)]


# -- Sanitization of restored sessions ----------------------------------------

_ACTION_PREFIX = re.compile(
    r"^(standardize to|use|change to|replace with|update to)\s*", re.IGNORECASE
)
_SURROUNDING_QUOTES = re.compile(r"^['\"`]|['\"`]$")
INFORMATIONAL = "[Informational]"


def sanitize_suggestion(suggestion: Suggestion) -> Suggestion:
    """Repair a suggestion whose replacement text went missing.

    Older sessions sometimes stored only the display label.  The replacement
    is recovered from it by dropping the action verb ("Use", "Change to", ...)
    and surrounding quotes; ``"[Informational]"`` marks a suggestion with
    nothing actionable left.
    """
    text = suggestion.suggestion
    display = suggestion.display_text

    if not text.strip() and display:
        cleaned = _SURROUNDING_QUOTES.sub("", _ACTION_PREFIX.sub("", display, count=1)).strip()
        if cleaned:
            text = cleaned
    if not text.strip():
        text = display or INFORMATIONAL

    update = {
        "suggestion": text,
        "display_text": display or f'Use "{text}"',
        "reasoning": suggestion.reasoning or "AI-generated suggestion",
    }
    return suggestion.model_copy(update=update)


def sanitize_results(results: Iterable[ResultItem]) -> list[ResultItem]:
    """Apply ``sanitize_suggestion`` to every suggestion in a result sequence."""
    out: list[ResultItem] = []
    modified = 0
    for item in results:
        if isinstance(item, Finding) and item.suggestions:
            cleaned = [sanitize_suggestion(s) for s in item.suggestions]
            modified += sum(1 for a, b in zip(item.suggestions, cleaned) if a != b)
            item = item.model_copy(update={"suggestions": cleaned})
        out.append(item)
    if modified:
        logger.info("Sanitized %d suggestion(s) in restored results", modified)
    return out
