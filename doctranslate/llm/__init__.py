"""LLM access: provider factory and async client."""

from doctranslate.llm.client import (
    ChatModelClient,
    Generation,
    LLMClient,
    Usage,
    client_from_config,
    is_retryable,
)
from doctranslate.llm.factory import clear_cache, create_llm

__all__ = [
    "ChatModelClient",
    "Generation",
    "LLMClient",
    "Usage",
    "clear_cache",
    "client_from_config",
    "create_llm",
    "is_retryable",
]
