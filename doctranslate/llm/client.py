"""Async LLM client over LangChain chat models.

Turns produced by the message adapter are mapped onto LangChain messages,
sent with ``ainvoke`` and retried with exponential backoff on transient
failures. Every other failure surfaces as a ProviderError.
"""

import asyncio
import logging
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from doctranslate.config import MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY
from doctranslate.constants import TurnRole
from doctranslate.errors import ProviderError
from doctranslate.llm.factory import create_llm
from doctranslate.models import TranslationConfig
from doctranslate.prompting.adapter import Turn

logger = logging.getLogger(__name__)

# Exceptions that are retryable
RETRYABLE_EXCEPTIONS = (
    "RateLimitError",
    "APIConnectionError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "ResourceExhausted",
    "ServiceUnavailable",
    "DeadlineExceeded",
)


class Usage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class Generation(BaseModel):
    """Text and token usage of one completion."""

    text: str
    usage: Usage = Usage()


class LLMClient(Protocol):
    """What the orchestrator needs from an LLM."""

    async def generate_content(
        self, turns: list[Turn], system_instruction: str | None = None
    ) -> Generation: ...


def is_retryable(exception: Exception) -> bool:
    """Check if an exception is retryable.

    Args:
        exception: The exception to check

    Returns:
        True if the exception should be retried
    """
    if isinstance(exception, ProviderError):
        return exception.retryable
    exc_name = type(exception).__name__
    if exc_name in RETRYABLE_EXCEPTIONS or "rate" in exc_name.lower():
        return True
    status = _status_code(exception)
    return status is not None and (status == 429 or status >= 500)


def _status_code(exception: Exception) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(exception, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def to_provider_error(exception: Exception) -> ProviderError:
    """Wrap a provider SDK exception, keeping its code and class name."""
    if isinstance(exception, ProviderError):
        return exception
    status = getattr(exception, "status", None)
    return ProviderError(
        str(exception) or type(exception).__name__,
        code=_status_code(exception),
        status=status if isinstance(status, str) else type(exception).__name__,
        retryable=is_retryable(exception),
    )


def to_langchain_messages(turns: list[Turn], system_instruction: str | None = None) -> list[BaseMessage]:
    """Map a system instruction and turns to LangChain messages."""
    messages: list[BaseMessage] = []
    if system_instruction:
        messages.append(SystemMessage(content=system_instruction))
    for turn in turns:
        if turn.role == TurnRole.USER:
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))
    return messages


def extract_text(content: Any) -> str:
    """Flatten AIMessage content (a string or a list of content blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def extract_usage(response: Any) -> Usage:
    usage = getattr(response, "usage_metadata", None) or {}
    prompt = usage.get("input_tokens", 0) or 0
    completion = usage.get("output_tokens", 0) or 0
    total = usage.get("total_tokens") or prompt + completion
    return Usage(prompt=prompt, completion=completion, total=total)


class ChatModelClient:
    """LLMClient backed by a LangChain chat model, with retry logic."""

    def __init__(self, llm: BaseChatModel, max_retries: int = MAX_RETRIES):
        self._llm = llm
        self._max_retries = max(max_retries, 1)

    @property
    def llm(self) -> BaseChatModel:
        return self._llm

    async def generate_content(
        self, turns: list[Turn], system_instruction: str | None = None
    ) -> Generation:
        """Invoke the model with exponential backoff retry.

        Args:
            turns: Ordered user/model turns
            system_instruction: Optional system prompt

        Returns:
            Generation with response text and usage

        Raises:
            ProviderError: When the call fails permanently or retries run out
        """
        messages = to_langchain_messages(turns, system_instruction)

        for attempt in range(self._max_retries):
            try:
                response = await self._llm.ainvoke(messages)
                return Generation(text=extract_text(response.content), usage=extract_usage(response))

            except Exception as e:
                if not is_retryable(e) or attempt == self._max_retries - 1:
                    raise to_provider_error(e) from e

                delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
                logger.warning(
                    f"LLM call failed (attempt {attempt + 1}/{self._max_retries}): {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise ProviderError("LLM call failed without a response")


def client_from_config(config: TranslationConfig) -> ChatModelClient:
    """Build a client from the persisted translation config."""
    llm = create_llm(
        provider=config.provider,
        model=config.model or None,
        temperature=config.temperature,
        max_output_tokens=config.max_output_tokens,
        top_p=config.top_p,
        top_k=config.top_k,
    )
    return ChatModelClient(llm)


__all__ = [
    "ChatModelClient",
    "Generation",
    "LLMClient",
    "Usage",
    "client_from_config",
    "is_retryable",
    "to_langchain_messages",
]
