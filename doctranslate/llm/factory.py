"""LLM Factory - Multi-provider chat models for translation.

Creates LangChain chat models for Google (default), Anthropic, Mistral,
OpenAI, xAI and LM Studio. Provider SDKs are imported lazily so only the
selected provider's package needs to be installed.
"""

import logging
import os
import threading
from typing import Literal

from langchain_core.language_models.chat_models import BaseChatModel

from doctranslate.config import DEFAULT_MODELS, DEFAULT_PROVIDER, DEFAULT_TEMPERATURE

logger = logging.getLogger(__name__)

# Type alias for supported providers
ProviderType = Literal["anthropic", "google", "lmstudio", "mistral", "openai", "xai"]

# Thread-safe cache for LLM instances
_llm_cache: dict[tuple, BaseChatModel] = {}
_cache_lock = threading.Lock()


def create_llm(
    provider: ProviderType | None = None,
    model: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_output_tokens: int | None = None,
    top_p: float | None = None,
    top_k: int | None = None,
) -> BaseChatModel:
    """Create a chat model with multi-provider support.

    Instances are cached by their full generation settings.

    Args:
        provider: LLM provider. Defaults to PROVIDER env var or "google".
        model: Model name. Defaults to {PROVIDER}_MODEL env var or provider default.
        temperature: Sampling temperature (0.0-2.0).
        max_output_tokens: Output token limit, if any.
        top_p: Nucleus sampling, if set.
        top_k: Top-k sampling, if set (ignored by OpenAI-compatible providers).

    Returns:
        Configured chat model.

    Raises:
        ValueError: If provider is invalid.

    Examples:
        >>> llm = create_llm(temperature=1.0)
        >>> llm = create_llm(provider="anthropic", model="claude-haiku-4-5")
    """
    selected_provider = provider or DEFAULT_PROVIDER

    if selected_provider not in DEFAULT_MODELS:
        raise ValueError(
            f"Invalid provider: {selected_provider}. "
            f"Must be one of: {', '.join(DEFAULT_MODELS.keys())}"
        )

    selected_model = model or DEFAULT_MODELS[selected_provider]

    cache_key = (selected_provider, selected_model, temperature, max_output_tokens, top_p, top_k)

    with _cache_lock:
        if cache_key in _llm_cache:
            logger.debug(
                f"Using cached LLM: {selected_provider}/{selected_model} (temp={temperature})"
            )
            return _llm_cache[cache_key]

        logger.info(
            f"Creating LLM: {selected_provider}/{selected_model} (temp={temperature})"
        )

        if selected_provider == "google":
            from langchain_google_genai import ChatGoogleGenerativeAI

            llm = ChatGoogleGenerativeAI(
                model=selected_model,
                temperature=temperature,
                **_drop_none(max_output_tokens=max_output_tokens, top_p=top_p, top_k=top_k),
            )
        elif selected_provider == "mistral":
            from langchain_mistralai import ChatMistralAI

            llm = ChatMistralAI(
                model=selected_model,
                temperature=temperature,
                **_drop_none(max_tokens=max_output_tokens, top_p=top_p),
            )
        elif selected_provider == "openai":
            from langchain_openai import ChatOpenAI

            llm = ChatOpenAI(
                model=selected_model,
                temperature=temperature,
                **_drop_none(max_tokens=max_output_tokens, top_p=top_p),
            )
        elif selected_provider == "xai":
            from langchain_openai import ChatOpenAI

            llm = ChatOpenAI(
                model=selected_model,
                temperature=temperature,
                base_url="https://api.x.ai/v1",
                api_key=os.getenv("XAI_API_KEY"),
                **_drop_none(max_tokens=max_output_tokens, top_p=top_p),
            )
        elif selected_provider == "lmstudio":
            from langchain_openai import ChatOpenAI

            base_url = os.getenv("LMSTUDIO_BASE_URL") or "http://localhost:1234/v1"
            llm = ChatOpenAI(
                model=selected_model,
                temperature=temperature,
                base_url=base_url,
                api_key="not-needed",  # Local server, no API key required
                **_drop_none(max_tokens=max_output_tokens, top_p=top_p),
            )
        else:  # anthropic
            from langchain_anthropic import ChatAnthropic

            llm = ChatAnthropic(
                model=selected_model,
                temperature=temperature,
                **_drop_none(max_tokens=max_output_tokens, top_p=top_p, top_k=top_k),
            )

        _llm_cache[cache_key] = llm

        return llm


def _drop_none(**kwargs) -> dict:
    return {k: v for k, v in kwargs.items() if v is not None}


def clear_cache() -> None:
    """Clear the LLM instance cache.

    Useful for testing or after the persisted translation config changes.
    """
    with _cache_lock:
        _llm_cache.clear()
    logger.debug("LLM cache cleared")


__all__ = ["ProviderType", "clear_cache", "create_llm"]
