"""Text-completion backends used for summarization.

Both backends expose the same single-shot call::

    await backend.complete(system, messages, model=..., temperature=..., max_tokens=...)

``AnthropicBackend`` is the cloud default. ``OllamaBackend`` talks to a
locally hosted Ollama-compatible server so summarization keeps working offline
for sessions already bound to a local model.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import anthropic
import httpx

from chatmem.config import settings

logger = logging.getLogger(__name__)

NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    anthropic.APIConnectionError,
    ConnectionError,
    TimeoutError,
)


class CompletionBackend(Protocol):
    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str: ...


class AnthropicBackend:
    """Single-shot Claude call: no tools, no streaming."""

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key if api_key is not None else settings.anthropic_api_key
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        client = self._get_client()
        response = await client.messages.create(
            model=model,
            system=system,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.content[0].text


class OllamaBackend:
    """Chat completion against an Ollama-compatible ``/api/chat`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 60.0,
        health_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.local_model_base_url).rstrip("/")
        self._timeout = timeout
        self._health_timeout = (
            settings.local_health_timeout_seconds if health_timeout is None else health_timeout
        )
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=self._transport
        )

    async def is_available(self) -> bool:
        """Return True if the local server answers its model listing."""
        try:
            async with self._client(self._health_timeout) as client:
                resp = await client.get("/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.info("Local model endpoint %s unreachable: %s", self.base_url, exc)
            return False

    async def complete(
        self,
        system: str,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        payload = {
            "model": model,
            "stream": False,
            "messages": [{"role": "system", "content": system}, *messages],
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        async with self._client(self._timeout) as client:
            resp = await client.post("/api/chat", json=payload)
            resp.raise_for_status()
            data = resp.json()
        return data.get("message", {}).get("content", "")
