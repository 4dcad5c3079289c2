"""Provider registry for LLM backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geomatricula.llm.client import LLMClient

from geomatricula.llm.providers.openai_compat import OpenAICompatClient

# Any gateway speaking the OpenAI chat completions protocol
PROVIDER_REGISTRY: dict[str, type[LLMClient]] = {
    "openai": OpenAICompatClient,
    "gateway": OpenAICompatClient,
    "vllm": OpenAICompatClient,
}

__all__ = ["PROVIDER_REGISTRY", "OpenAICompatClient"]
