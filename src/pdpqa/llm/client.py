"""
Minimal async chat-completions client.

Speaks the OpenAI-compatible ``/chat/completions`` protocol over httpx so
any compatible gateway (OpenAI, Azure, vLLM, LiteLLM, ...) can back the
page assistant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from pdpqa.llm.config import LLMEndpointConfig

logger = structlog.get_logger(__name__)


class LLMClientError(Exception):
    """Raised when the LLM endpoint fails or returns an unusable response."""

    pass


@dataclass
class ChatMessage:
    """A single chat message. ``content`` may be multimodal parts."""

    role: str
    content: str | list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatCompletion:
    """Assistant reply plus token usage."""

    content: str
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)


class LLMClient:
    """
    Async chat-completions client.

    Usage::

        async with LLMClient(endpoint) as client:
            completion = await client.chat(messages)
    """

    def __init__(
        self,
        endpoint: LLMEndpointConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._log = logger.bind(component="llm_client", model=endpoint.model)

    @property
    def endpoint(self) -> LLMEndpointConfig:
        return self._endpoint

    async def __aenter__(self) -> LLMClient:
        self._open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _open(self) -> httpx.AsyncClient:
        if self._http is None:
            headers = {"Content-Type": "application/json"}
            if self._endpoint.api_key:
                headers["Authorization"] = f"Bearer {self._endpoint.api_key}"
            self._http = httpx.AsyncClient(
                base_url=self._endpoint.base_url,
                headers=headers,
                timeout=self._endpoint.timeout_s,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.0,
        max_tokens: int | None = None,
        json_mode: bool = True,
    ) -> ChatCompletion:
        """Send a chat completion request and return the first choice."""
        payload: dict[str, Any] = {
            "model": self._endpoint.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens or self._endpoint.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        http = self._open()
        try:
            response = await http.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise LLMClientError(f"LLM request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise LLMClientError(
                f"LLM endpoint returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise LLMClientError(f"LLM request failed: {e}") from e
        except ValueError as e:
            raise LLMClientError(f"LLM response is not JSON: {e}") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise LLMClientError("LLM response contained no choices")

        content = (choices[0].get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise LLMClientError("LLM response contained no message content")

        usage = data.get("usage") or {}
        self._log.debug("chat_completed", total_tokens=usage.get("total_tokens", 0))

        return ChatCompletion(
            content=content,
            model=data.get("model", self._endpoint.model),
            usage={k: v for k, v in usage.items() if isinstance(v, int)},
        )
