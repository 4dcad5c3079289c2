"""LLM provider abstraction used by the extraction and revision oracles."""

from geomatricula.llm.client import LLMClient, LLMResponseError, create_llm_client

__all__ = ["LLMClient", "LLMResponseError", "create_llm_client"]
