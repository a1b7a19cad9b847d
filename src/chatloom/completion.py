"""Text-completion backend client.

Speaks the OpenAI-compatible ``/chat/completions`` API, which Ollama,
LM Studio, vLLM and the hosted OpenAI endpoint all accept.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from .errors import CompletionBackendFailure
from .logging import get_logger
from .model import Turn

logger = get_logger(__name__)


class CompletionBackend(Protocol):
    async def complete(self, turns: Sequence[Turn], *, model: str | None = None) -> str:
        """Return the assistant reply for an ordered list of turns.

        Raises:
            CompletionBackendFailure: If the backend call fails.
        """
        ...


class ChatCompletionClient:
    def __init__(
        self,
        base_url: str,
        *,
        model: str,
        api_key: str | None = None,
        timeout_s: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout_s
        )
        self.model = model

    async def complete(self, turns: Sequence[Turn], *, model: str | None = None) -> str:
        payload = {
            "model": model or self.model,
            "messages": [turn.as_message() for turn in turns],
        }
        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=self._headers
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            logger.error("completion.request_failed", error=str(exc))
            raise CompletionBackendFailure(str(exc)) from exc
        except ValueError as exc:
            raise CompletionBackendFailure("invalid JSON from completion backend") from exc

        content = _extract_content(body)
        if content is None:
            raise CompletionBackendFailure("completion backend returned no message")
        logger.debug("completion.done", model=payload["model"], chars=len(content))
        return content

    async def close(self) -> None:
        await self._client.aclose()


def _extract_content(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        return None
    return content
