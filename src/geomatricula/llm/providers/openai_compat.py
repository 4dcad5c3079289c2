"""OpenAI-compatible chat completions provider (AI gateways, vLLM, OpenAI)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from geomatricula.core.config import LLMConfig
from geomatricula.llm.client import LLMClient, LLMResponseError, Message

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
MODELS_PATH = "/v1/models"
BACKOFF_BASE_SECONDS = 0.5


def _auth_headers(api_key: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"} if api_key else {}


def _message_content(data: dict[str, Any]) -> str:
    """Text of the first choice.

    Some gateways answer with a list of content parts instead of a string;
    the text parts are joined. A null content becomes an empty string.
    """
    content = data["choices"][0]["message"].get("content")
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content or ""


class OpenAICompatClient(LLMClient):
    """Talks to any server that exposes the OpenAI /v1/chat/completions API.

    5xx answers and transport errors are retried with exponential backoff
    up to ``config.max_retries`` times. 4xx answers (bad key, rate limit,
    exhausted gateway credits) are returned at once and raised by the caller.
    """

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=_auth_headers(config.api_key),
        )

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        messages: list[Message] = []
        if system_prompt is not None:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages, temperature=temperature)

    async def chat(
        self,
        messages: list[Message],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        resp = await self._post(CHAT_COMPLETIONS_PATH, self._completion_payload(messages, temperature, model))
        resp.raise_for_status()
        # gateways report quota and routing failures as 200 bodies without choices
        try:
            return _message_content(resp.json())
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMResponseError(
                f"Malformed completion from {CHAT_COMPLETIONS_PATH}: {resp.text[:200]!r}"
            ) from exc

    async def is_available(self) -> bool:
        try:
            resp = await self._http.get(MODELS_PATH)
        except httpx.HTTPError:
            return False
        return resp.status_code == 200

    async def close(self) -> None:
        await self._http.aclose()

    def _completion_payload(
        self, messages: list[Message], temperature: float | None, model: str | None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }
        if self.config.top_p is not None:
            payload["top_p"] = self.config.top_p
        return payload

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        attempts = max(1, self.config.max_retries + 1)
        attempt = 1
        while True:
            try:
                resp = await self._http.post(path, json=payload)
            except httpx.TransportError as exc:
                if attempt == attempts:
                    raise
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code < 500 or attempt == attempts:
                    return resp
                reason = f"HTTP {resp.status_code}"

            delay = BACKOFF_BASE_SECONDS * 2 ** (attempt - 1)
            logger.warning(
                "LLM call to %s failed (%s), retry %d/%d in %.1fs",
                path, reason, attempt, attempts - 1, delay,
            )
            await asyncio.sleep(delay)
            attempt += 1
