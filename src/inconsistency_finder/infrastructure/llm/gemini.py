"""Gemini ``generateContent`` transport built on ``httpx``.

Posts to ``{base_url}/models/{model}:generateContent?key=...`` and returns
the body as text for every HTTP status: Gemini reports quota and overload
conditions as a JSON ``error`` object, which the orchestrator classifies.
Only failures that produce no body at all raise ``TransportError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from inconsistency_finder.domain.exceptions import TransportError
from inconsistency_finder.infrastructure.config import DEFAULT_BASE_URL, DEFAULT_MODEL

from . import Transport

logger = logging.getLogger(__name__)


class GeminiTransport(Transport):
    """Async transport for the Gemini generative language API.

    Parameters
    ----------
    model:
        Gemini model identifier, e.g. ``"gemini-2.5-flash"``.
    base_url:
        API root.  Trailing slashes are stripped.
    timeout:
        Request timeout in seconds.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one backed by
        ``httpx.MockTransport``).  A client passed in is not closed by
        ``aclose()``.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
        )

    @property
    def endpoint_url(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    async def send(self, api_key: str, payload: dict[str, Any]) -> str:
        try:
            response = await self._client.post(
                self.endpoint_url,
                params={"key": api_key},
                json=payload,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to Gemini timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error contacting Gemini: {exc}") from exc

        if response.status_code >= 400:
            logger.debug(
                "Gemini returned HTTP %d (%d bytes)",
                response.status_code,
                len(response.content),
            )
        return response.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def __repr__(self) -> str:
        return f"GeminiTransport(base_url={self._base_url!r}, model={self._model!r})"
