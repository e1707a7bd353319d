"""LLM transport layer for the Inconsistency Finder.

A ``Transport`` sends one generation request with one credential and returns
the raw response body.  It never interprets the body: deciding whether a
response is a provider error, a truncated answer or a usable result belongs
to the orchestrator, which needs the raw text to classify shell-parse
failures.

Public API
----------
Transport
    Abstract base class for transports.
GeminiTransport
    ``httpx``-based transport for the Gemini ``generateContent`` endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """Send a request payload and return the raw response body."""

    @abstractmethod
    async def send(self, api_key: str, payload: dict[str, Any]) -> str:
        """POST *payload* using *api_key*.

        Raises
        ------
        TransportError
            If no response was received (connection failure, timeout).
        """

    async def aclose(self) -> None:
        """Release any held connections."""

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


from .gemini import GeminiTransport  # noqa: E402

__all__ = ["GeminiTransport", "Transport"]
