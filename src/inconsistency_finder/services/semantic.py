"""Script-aware concept similarity.

These helpers are deliberately conservative: they exist to *block* merges of
terms that merely normalize alike (a Latin username and an unrelated CJK
term both reduce to an empty ASCII string), not to find every paraphrase.
"""

from __future__ import annotations

import logging
import re

from inconsistency_finder.domain.enums import ScriptCategory

logger = logging.getLogger(__name__)

_NEUTRAL_PUNCTUATION = frozenset(".,!?'\"`:;()[]{}-_/\\")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SINGLE_PROPER = re.compile(r"[A-Z][a-zA-Z]+")
_MULTI_PROPER = re.compile(r"[A-Z][a-z]+")

OVERLAP_THRESHOLD = 0.8


def _classify(code: int) -> str | None:
    """Return the script bucket for a code point, or ``None`` for neutral."""
    if 0x41 <= code <= 0x5A or 0x61 <= code <= 0x7A or 0xC0 <= code <= 0x24F:
        return "latin"
    if 0x3040 <= code <= 0x30FF or 0x3400 <= code <= 0x9FFF or 0xF900 <= code <= 0xFAFF:
        return "cjk"
    if 0x400 <= code <= 0x4FF:
        return "cyrillic"
    return "other"


def detect_script(text: object) -> ScriptCategory:
    """Classify *text* into a coarse script category.

    ASCII digits, whitespace and common ASCII punctuation are neutral.  A
    single recognized script gives that category; several scripts, or a
    recognized script next to unclassified characters, give ``MIXED``.  A
    string with no recognized script at all (pure Hangul, Greek, emoji) is
    ``UNKNOWN`` rather than ``MIXED``, so it never trips the mixed-script
    gate on its own; the normalization and short-token checks in
    ``are_similar`` still keep such strings from merging with Latin text.
    """
    if not isinstance(text, str) or not text:
        return ScriptCategory.UNKNOWN

    seen: set[str] = set()
    for ch in text:
        if ch.isspace() or ("0" <= ch <= "9") or ch in _NEUTRAL_PUNCTUATION:
            continue
        seen.add(_classify(ord(ch)))

    recognized = seen - {"other"}
    if not recognized:
        return ScriptCategory.UNKNOWN
    if len(seen) == 1:
        return ScriptCategory(recognized.pop())
    return ScriptCategory.MIXED


def normalize(text: str) -> str:
    """Lowercase and keep only ASCII letters, digits and whitespace."""
    return _NON_ALNUM.sub("", text.lower()).strip()


def is_proper_name_like(text: object) -> bool:
    """Heuristic: ``"Fuchen"`` or ``"Li Fuchen"``, but not ``"sword qi"``."""
    if not isinstance(text, str):
        return False
    tokens = text.split()
    if len(tokens) == 1:
        return _SINGLE_PROPER.fullmatch(tokens[0]) is not None
    return len(tokens) > 1 and all(_MULTI_PROPER.fullmatch(t) for t in tokens)


def are_similar(concept1: object, concept2: object) -> bool:
    """Decide whether two concept strings name the same thing.

    Parameters
    ----------
    concept1, concept2:
        Raw concept strings as returned by the model.

    Returns
    -------
    bool
        ``True`` only if the pair passes every gate: matching scripts, exact
        match for short or non-Latin strings, matching proper-name shape, and
        containment or a strong token overlap.
    """
    if not concept1 or not concept2:
        return False
    c1, c2 = str(concept1), str(concept2)

    script1, script2 = detect_script(c1), detect_script(c2)
    if (
        script1 is not ScriptCategory.UNKNOWN
        and script2 is not ScriptCategory.UNKNOWN
        and script1 is not script2
    ):
        logger.debug(
            "Similarity blocked by script mismatch: %r [%s] vs %r [%s]",
            c1, script1.value, c2, script2.value,
        )
        return False

    norm1, norm2 = normalize(c1), normalize(c2)
    if not norm1 and not norm2:
        return c1.strip() == c2.strip()

    if norm1 and norm1 == norm2:
        return True

    # Short tokens only match exactly.
    if len(norm1) <= 3 or len(norm2) <= 3:
        return False

    if is_proper_name_like(c1) != is_proper_name_like(c2):
        logger.debug("Similarity rejected by proper-name mismatch: %r vs %r", c1, c2)
        return False

    if norm1 in norm2 or norm2 in norm1:
        return True

    words1, words2 = norm1.split(), norm2.split()
    if words1 and words2:
        common = [w for w in words1 if w in words2]
        if common and len(common) / max(len(words1), len(words2)) >= OVERLAP_THRESHOLD:
            return True

    return False
