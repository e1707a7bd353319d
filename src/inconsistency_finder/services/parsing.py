"""Response interpretation for Gemini ``generateContent`` bodies.

Parsing happens in layers, each with its own failure class:

1. the HTTP body itself (``ShellParseError``, retriable),
2. a structured ``{"error": {...}}`` object (``ProviderError``),
3. the candidate content and finish reason (``FormatError``, terminal),
4. the model's own text (``ContentParseError``, retriable once),
5. the expected response shape (``FormatError``, terminal).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from inconsistency_finder.domain.exceptions import (
    ContentParseError,
    FormatError,
    ProviderError,
    ShellParseError,
)
from inconsistency_finder.domain.findings import Finding
from inconsistency_finder.domain.values import InitialResponse, ResponseShape, VerificationResponse

logger = logging.getLogger(__name__)

VERIFIED_KEY = "verified_inconsistencies"
NEW_KEY = "new_inconsistencies"

MAX_TOKENS_MESSAGE = (
    "Analysis failed: The text from the selected chapters is too long, and the "
    "AI's response was cut off. Please try again with fewer chapters."
)
VERIFICATION_FORMAT_MESSAGE = (
    "Invalid response format for verification run. "
    "Expected 'verified_inconsistencies' and 'new_inconsistencies' keys."
)
INITIAL_FORMAT_MESSAGE = "Invalid response format for initial run. Expected a JSON array."

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_from_string(text: str) -> str:
    """Pull the JSON document out of free-form model text.

    Prefers a fenced code block; falls back to the span from the first
    ``{``/``[`` to the last ``}``/``]``; otherwise returns *text* unchanged.
    """
    match = _FENCED_BLOCK.search(text)
    if match and match.group(1):
        return match.group(1)

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        start = min(starts)
        end = max(text.rfind("}"), text.rfind("]"))
        if end > start:
            return text[start : end + 1]
    return text


def parse_shell(raw: str) -> dict[str, Any]:
    """Decode the outer HTTP body."""
    try:
        shell = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ShellParseError(f"Failed to parse API response body: {exc}") from exc
    if not isinstance(shell, dict):
        raise ShellParseError("API response body is not a JSON object")
    return shell


def raise_for_provider_error(shell: dict[str, Any]) -> None:
    error = shell.get("error")
    if not error:
        return
    if not isinstance(error, dict):
        raise ProviderError(message=str(error))
    raise ProviderError(
        message=str(error.get("message") or ""),
        status=str(error.get("status") or ""),
        details={"code": error.get("code")},
    )


def extract_content(shell: dict[str, Any]) -> str:
    """Return the text of the first candidate.

    A candidate without content is a terminal ``FormatError``; content that
    lacks a text part is treated like unparseable model output.
    """
    candidates = shell.get("candidates")
    candidate = candidates[0] if isinstance(candidates, list) and candidates else None
    if not isinstance(candidate, dict) or not candidate.get("content"):
        finish_reason = candidate.get("finishReason") if isinstance(candidate, dict) else None
        if finish_reason == "MAX_TOKENS":
            raise FormatError(MAX_TOKENS_MESSAGE, finish_reason=finish_reason)
        raise FormatError(
            f"Invalid API response: No content found. Finish Reason: {finish_reason or 'Unknown'}",
            finish_reason=finish_reason or "",
        )

    try:
        text = candidate["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ContentParseError(f"Response content has no text part ({exc!r})") from exc
    if not isinstance(text, str):
        raise ContentParseError("Response content text is not a string")
    return text


def parse_content(text: str) -> Any:
    """Decode the model's JSON answer."""
    try:
        return json.loads(extract_json_from_string(text))
    except ValueError as exc:
        raise ContentParseError(str(exc)) from exc


def _findings(items: list[Any]) -> tuple[Finding, ...]:
    out = []
    for item in items:
        if not isinstance(item, dict):
            logger.debug("Skipping non-object item in model response: %r", item)
            continue
        try:
            out.append(Finding.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed finding %r in model response: %s", item.get("concept"), exc
            )
    return tuple(out)


def validate_response_shape(parsed: Any, verification: bool) -> ResponseShape | FormatError:
    """Check *parsed* against the shape the prompt asked for.

    Returns the typed response, or a ``FormatError`` value (not raised) when
    the shape does not match.  Individual findings that fail validation are
    skipped; they never invalidate the rest of the response.
    """
    if verification:
        if not isinstance(parsed, dict):
            return FormatError(VERIFICATION_FORMAT_MESSAGE)
        verified, new = parsed.get(VERIFIED_KEY), parsed.get(NEW_KEY)
        if not isinstance(verified, list) or not isinstance(new, list):
            return FormatError(VERIFICATION_FORMAT_MESSAGE)
        return VerificationResponse(verified=_findings(verified), new=_findings(new))

    if not isinstance(parsed, list):
        return FormatError(INITIAL_FORMAT_MESSAGE)
    return InitialResponse(findings=_findings(parsed))


def interpret_response(raw: str, verification: bool) -> ResponseShape:
    """Run every parsing layer over *raw*, raising the matching error class."""
    shell = parse_shell(raw)
    raise_for_provider_error(shell)
    parsed = parse_content(extract_content(shell))
    shape = validate_response_shape(parsed, verification)
    if isinstance(shape, FormatError):
        raise shape
    return shape
