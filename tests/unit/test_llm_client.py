"""Tests for doctranslate.llm.client module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from doctranslate.constants import TurnRole
from doctranslate.errors import ProviderError
from doctranslate.llm.client import (
    ChatModelClient,
    client_from_config,
    extract_text,
    extract_usage,
    is_retryable,
    to_langchain_messages,
    to_provider_error,
)
from doctranslate.models import TranslationConfig
from doctranslate.prompting import Turn


class RateLimitError(Exception):
    pass


class ServerError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class TestIsRetryable:
    """Tests for is_retryable()."""

    def test_rate_limit_by_name(self):
        assert is_retryable(RateLimitError("slow down"))

    def test_status_codes(self):
        assert is_retryable(ServerError("boom", 503))
        assert is_retryable(ServerError("quota", 429))
        assert not is_retryable(ServerError("bad request", 400))

    def test_plain_errors_not_retryable(self):
        assert not is_retryable(ValueError("safety filter"))

    def test_provider_error_flag(self):
        assert is_retryable(ProviderError("x", retryable=True))
        assert not is_retryable(ProviderError("x"))


class TestConversions:
    """Tests for message and response mapping."""

    def test_to_langchain_messages(self):
        messages = to_langchain_messages(
            [Turn(role=TurnRole.USER, text="S0"), Turn(role=TurnRole.MODEL, text="T0")],
            system_instruction="Translate.",
        )
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage]
        assert messages[0].content == "Translate."

    def test_no_system_message_when_empty(self):
        messages = to_langchain_messages([Turn(role=TurnRole.USER, text="x")], system_instruction=None)
        assert len(messages) == 1

    def test_extract_text_from_blocks(self):
        content = [{"type": "text", "text": "Hello "}, {"type": "tool_use"}, "world"]
        assert extract_text(content) == "Hello world"
        assert extract_text("plain") == "plain"

    def test_extract_usage(self):
        response = AIMessage(
            content="x",
            usage_metadata={"input_tokens": 12, "output_tokens": 8, "total_tokens": 20},
        )
        usage = extract_usage(response)
        assert (usage.prompt, usage.completion, usage.total) == (12, 8, 20)

    def test_extract_usage_missing(self):
        assert extract_usage(AIMessage(content="x")).total == 0

    def test_to_provider_error_keeps_code(self):
        error = to_provider_error(ServerError("unavailable", 503))
        assert isinstance(error, ProviderError)
        assert error.code == 503
        assert error.status == "ServerError"
        assert error.retryable is True


class TestChatModelClient:
    """Tests for ChatModelClient.generate_content()."""

    @pytest.mark.asyncio
    async def test_success(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(
            return_value=AIMessage(
                content="T0",
                usage_metadata={"input_tokens": 3, "output_tokens": 2, "total_tokens": 5},
            )
        )
        client = ChatModelClient(llm, max_retries=3)

        generation = await client.generate_content(
            [Turn(role=TurnRole.USER, text="S0")], system_instruction="Translate."
        )

        assert generation.text == "T0"
        assert generation.usage.total == 5
        sent = llm.ainvoke.call_args.args[0]
        assert isinstance(sent[0], SystemMessage)

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=[RateLimitError("slow"), AIMessage(content="ok")])
        client = ChatModelClient(llm, max_retries=3)

        with patch("doctranslate.llm.client.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            generation = await client.generate_content([Turn(role=TurnRole.USER, text="x")])

        assert generation.text == "ok"
        assert llm.ainvoke.await_count == 2
        mock_sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=ValueError("blocked by safety filter"))
        client = ChatModelClient(llm, max_retries=3)

        with pytest.raises(ProviderError, match="blocked by safety filter"):
            await client.generate_content([Turn(role=TurnRole.USER, text="x")])
        assert llm.ainvoke.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=ServerError("overloaded", 503))
        client = ChatModelClient(llm, max_retries=2)

        with patch("doctranslate.llm.client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderError) as exc_info:
                await client.generate_content([Turn(role=TurnRole.USER, text="x")])

        assert exc_info.value.code == 503
        assert llm.ainvoke.await_count == 2


class TestClientFromConfig:
    """Tests for client_from_config()."""

    def test_passes_config_to_factory(self):
        config = TranslationConfig(provider="openai", model="gpt-4o", temperature=0.3, top_p=0.9)
        with patch("doctranslate.llm.client.create_llm") as mock_create:
            client = client_from_config(config)

        mock_create.assert_called_once_with(
            provider="openai",
            model="gpt-4o",
            temperature=0.3,
            max_output_tokens=config.max_output_tokens,
            top_p=0.9,
            top_k=None,
        )
        assert client.llm is mock_create.return_value
