"""Unit tests for the LLM client abstraction layer."""

from __future__ import annotations

import json

import httpx
import pytest

from geomatricula.core.config import LLMConfig
from geomatricula.llm.client import LLMClient, LLMResponseError, create_llm_client
from geomatricula.llm.providers.openai_compat import OpenAICompatClient

BASE_URL = "http://llm.test"
CHAT_URL = f"{BASE_URL}/v1/chat/completions"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _config(**overrides) -> LLMConfig:
    defaults = {
        "provider": "openai",
        "base_url": BASE_URL,
        "model": "text-model",
        "vision_model": "vision-model",
        "api_key": "sk-test",
        "max_retries": 1,
    }
    defaults.update(overrides)
    return LLMConfig(**defaults)


def _completion(content: str | list | None) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# ---------------------------------------------------------------------------
# Factory tests
# ---------------------------------------------------------------------------

class TestFactory:
    @pytest.mark.parametrize("provider", ["openai", "gateway", "vllm", "OpenAI"])
    def test_openai_compatible_providers(self, provider):
        client = create_llm_client(_config(provider=provider))
        assert isinstance(client, OpenAICompatClient)
        assert isinstance(client, LLMClient)

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_llm_client(_config(provider="nope"))


# ---------------------------------------------------------------------------
# OpenAI-compatible provider tests
# ---------------------------------------------------------------------------

class TestOpenAICompatClient:
    @pytest.mark.asyncio
    async def test_chat_payload(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", json=_completion("olá"))
        client = OpenAICompatClient(_config(temperature=0.2, max_tokens=512))
        try:
            result = await client.chat([{"role": "user", "content": "oi"}])
        finally:
            await client.close()

        assert result == "olá"
        request = httpx_mock.get_request()
        body = json.loads(request.content)
        assert body["model"] == "text-model"
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 512
        assert body["stream"] is False
        assert "top_p" not in body
        assert request.headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_model_override_and_top_p(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", json=_completion("ok"))
        client = OpenAICompatClient(_config(top_p=0.9))
        try:
            await client.chat([{"role": "user", "content": "x"}], model="vision-model", temperature=0.0)
        finally:
            await client.close()

        body = json.loads(httpx_mock.get_request().content)
        assert body["model"] == "vision-model"
        assert body["temperature"] == 0.0
        assert body["top_p"] == 0.9

    @pytest.mark.asyncio
    async def test_generate_with_system_prompt(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", json=_completion("resposta"))
        client = OpenAICompatClient(_config())
        try:
            assert await client.generate("pergunta", system_prompt="sistema") == "resposta"
        finally:
            await client.close()

        messages = json.loads(httpx_mock.get_request().content)["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_null_content(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", json=_completion(None))
        client = OpenAICompatClient(_config())
        try:
            assert await client.chat([{"role": "user", "content": "x"}]) == ""
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_retries_server_error(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", status_code=503)
        httpx_mock.add_response(url=CHAT_URL, method="POST", json=_completion("recuperado"))
        client = OpenAICompatClient(_config())
        try:
            assert await client.chat([{"role": "user", "content": "x"}]) == "recuperado"
        finally:
            await client.close()
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", status_code=402)
        client = OpenAICompatClient(_config())
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.chat([{"role": "user", "content": "x"}])
        finally:
            await client.close()
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_transport_error_exhausts_retries(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=CHAT_URL)
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=CHAT_URL)
        client = OpenAICompatClient(_config())
        try:
            with pytest.raises(httpx.ConnectError):
                await client.chat([{"role": "user", "content": "x"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_is_available(self, httpx_mock):
        httpx_mock.add_response(url=f"{BASE_URL}/v1/models", method="GET", json={"data": []})
        client = OpenAICompatClient(_config())
        try:
            assert await client.is_available() is True
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_is_unavailable(self, httpx_mock):
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=f"{BASE_URL}/v1/models")
        client = OpenAICompatClient(_config())
        try:
            assert await client.is_available() is False
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_ok_status_without_choices(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", json={"error": {"message": "quota"}})
        client = OpenAICompatClient(_config())
        try:
            with pytest.raises(LLMResponseError, match="quota"):
                await client.chat([{"role": "user", "content": "x"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body(self, httpx_mock):
        httpx_mock.add_response(url=CHAT_URL, method="POST", text="<html>Bad gateway</html>")
        client = OpenAICompatClient(_config())
        try:
            with pytest.raises(LLMResponseError):
                await client.chat([{"role": "user", "content": "x"}])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_content_parts_joined(self, httpx_mock):
        httpx_mock.add_response(
            url=CHAT_URL,
            method="POST",
            json=_completion([{"type": "text", "text": "par"}, {"type": "text", "text": "tes"}]),
        )
        client = OpenAICompatClient(_config())
        try:
            assert await client.chat([{"role": "user", "content": "x"}]) == "partes"
        finally:
            await client.close()
