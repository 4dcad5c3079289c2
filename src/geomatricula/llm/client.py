"""Abstract LLM client interface and factory function."""

from __future__ import annotations

import abc
from typing import Any

from geomatricula.core.config import LLMConfig

# A chat message whose content is plain text or a list of OpenAI-style
# content parts (text and image_url) for vision requests.
Message = dict[str, Any]


class LLMResponseError(ValueError):
    """The provider answered, but not with a readable completion."""


class LLMClient(abc.ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a completion from a single prompt."""

    @abc.abstractmethod
    async def chat(
        self,
        messages: list[Message],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Generate a response from a list of chat messages.

        ``model`` overrides the configured model for this call, e.g. to route
        scanned deeds to the vision model.
        """

    @abc.abstractmethod
    async def is_available(self) -> bool:
        """Return True if the provider is reachable."""

    async def close(self) -> None:
        """Clean up resources. Override if the provider holds connections."""


def create_llm_client(config: LLMConfig) -> LLMClient:
    """Factory: select and instantiate an LLM provider based on config.provider."""

    from geomatricula.llm.providers import PROVIDER_REGISTRY

    provider = config.provider.lower()
    if provider not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY))
        raise ValueError(
            f"Unknown LLM provider {config.provider!r}. "
            f"Available: {available}"
        )

    cls = PROVIDER_REGISTRY[provider]
    return cls(config)
