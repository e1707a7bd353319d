"""Scripted transport for tests and offline demos.

``ScriptedTransport`` replays a list of canned outcomes instead of calling
Gemini.  Each outcome is either a response body (``str`` or a JSON-able
``dict``/``list``) or an exception instance to raise.  The helper functions
build bodies in the shapes Gemini actually returns.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from inconsistency_finder.infrastructure.llm import Transport

Outcome = Any  # str | dict | list | BaseException


@dataclass(frozen=True)
class SentRequest:
    """One recorded ``send`` call."""

    api_key: str
    payload: dict[str, Any]

    @property
    def prompt(self) -> str:
        return self.payload["contents"][0]["parts"][0]["text"]


class ScriptedTransport(Transport):
    """Return scripted outcomes in order.

    After the script is exhausted the last outcome repeats, so a script of
    one error behaves like a permanently failing provider.

    Usage::

        transport = ScriptedTransport([
            provider_error("UNAVAILABLE", "The model is overloaded."),
            text_response(json.dumps([...])),
        ])
    """

    def __init__(self, outcomes: Sequence[Outcome]) -> None:
        if not outcomes:
            raise ValueError("ScriptedTransport needs at least one outcome")
        self._outcomes = list(outcomes)
        self.requests: list[SentRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def send(self, api_key: str, payload: dict[str, Any]) -> str:
        index = min(len(self.requests), len(self._outcomes) - 1)
        self.requests.append(SentRequest(api_key=api_key, payload=payload))
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            return outcome
        return json.dumps(outcome)


# -- Response builders ---------------------------------------------------------


def text_response(text: str, finish_reason: str = "STOP") -> dict[str, Any]:
    """A successful body whose first candidate contains *text*."""
    return {
        "candidates": [
            {"content": {"parts": [{"text": text}], "role": "model"}, "finishReason": finish_reason}
        ]
    }


def findings_response(findings: list[dict[str, Any]], fenced: bool = False) -> dict[str, Any]:
    """An initial-run body returning *findings* as a bare JSON array."""
    text = json.dumps(findings)
    return text_response(f"```json\n{text}\n```" if fenced else text)


def verification_response(
    verified: list[dict[str, Any]],
    new: list[dict[str, Any]],
) -> dict[str, Any]:
    """A verification-run body."""
    return text_response(
        json.dumps({"verified_inconsistencies": verified, "new_inconsistencies": new})
    )


def provider_error(status: str, message: str = "", code: int = 500) -> dict[str, Any]:
    """A structured provider error body."""
    return {"error": {"code": code, "message": message, "status": status}}


def empty_candidate(finish_reason: str | None = "MAX_TOKENS") -> dict[str, Any]:
    """A body whose candidate has no content."""
    candidate: dict[str, Any] = {}
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    return {"candidates": [candidate]}
