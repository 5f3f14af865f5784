"""End-to-end translation flow through the LangChain-backed client.

The chat model is a mock; everything else (chunker, templates, prompt
builder, retry logic, SQLite persistence, events) runs for real.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.events import SESSION_COMPLETE
from doctranslate.orchestrator import TranslationOrchestrator

DOCUMENT = "第一章。\n\n猫が鳴いた。\n\n犬も鳴いた。"


class RateLimitError(Exception):
    """Named like the provider SDK exception so it is retried."""


class ScriptedModel:
    """Chat model double: answers each user message from a table."""

    def __init__(self, answers: dict[str, str], rate_limited: set[str] | None = None):
        self.answers = answers
        self.rate_limited = set(rate_limited or ())
        self.requests: list[list] = []

    async def ainvoke(self, messages):
        self.requests.append(messages)
        text = messages[-1].content
        if text in self.rate_limited:
            self.rate_limited.discard(text)
            raise RateLimitError("429 Too Many Requests")
        answer = self.answers[text]
        return AIMessage(
            content=answer,
            usage_metadata={"input_tokens": 7, "output_tokens": 3, "total_tokens": 10},
        )


@pytest.fixture
def flow_orchestrator(session_service, template_store, recorder):
    # Default client factory: builds ChatModelClient via create_llm
    return TranslationOrchestrator(session_service, template_store, events=recorder)


@pytest.fixture
def uploaded(session_service):
    session_service.update_translation_config(chunk_size=8)
    session = session_service.create_session("猫の本", custom_dict="猫=cat")
    return session_service.upload_and_chunk(session.id, "book.md", DOCUMENT).session


class TestTranslationFlow:
    @pytest.mark.asyncio
    async def test_full_document_with_rate_limit(self, flow_orchestrator, session_service, uploaded, recorder):
        model = ScriptedModel(
            {
                "第一章。": "Chapter one.",
                "猫が鳴いた。": "<!-- note -->The cat meowed.  ",
                "犬も鳴いた。": "The dog barked too.",
            },
            rate_limited={"猫が鳴いた。"},
        )
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=model.ainvoke)

        with (
            patch("doctranslate.llm.client.create_llm", return_value=llm),
            patch("doctranslate.llm.client.RETRY_BASE_DELAY", 0.0),
        ):
            results = await flow_orchestrator.translate_all_pending_chunks(uploaded.id, "test")

        assert [r.status for r in results] == [ChunkStatus.COMPLETED] * 3
        assert llm.ainvoke.await_count == 4

        session = session_service.get_session(uploaded.id)
        assert session.status == SessionStatus.COMPLETED
        assert session.translated_text == "Chapter one.\n\nThe cat meowed.\n\nThe dog barked too."

        chunks = session_service.get_chunks(uploaded.id)
        assert all(c.token_count == 10 for c in chunks)

        # Second chunk carries the first as previous context
        second_request = model.requests[1]
        assert isinstance(second_request[0], SystemMessage)
        assert "Dictionary: 猫=cat" in second_request[0].content
        assert [type(m) for m in second_request[1:]] == [HumanMessage, AIMessage, HumanMessage]
        assert second_request[2].content == "Chapter one."

        assert recorder.types()[-1] == SESSION_COMPLETE

    @pytest.mark.asyncio
    async def test_permanent_failure_then_retry(self, flow_orchestrator, session_service, uploaded):
        answers = {"第一章。": "Chapter one.", "犬も鳴いた。": "The dog barked too."}
        model = ScriptedModel(answers)
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=model.ainvoke)

        with patch("doctranslate.llm.client.create_llm", return_value=llm):
            await flow_orchestrator.translate_all_pending_chunks(uploaded.id, "test")

            failed = session_service.get_chunks_page(uploaded.id, status=ChunkStatus.FAILED).chunks
            assert [c.order for c in failed] == [1]
            assert session_service.get_session(uploaded.id).status == SessionStatus.FAILED
            assert session_service.get_partial_translation(uploaded.id) == (
                "Chapter one.\n\nThe dog barked too."
            )

            answers["猫が鳴いた。"] = "The cat meowed."
            chunk = await flow_orchestrator.retry_failed_chunk(failed[0].id, "test")

        assert chunk.status == ChunkStatus.COMPLETED
        assert chunk.retry_count == 1
        session = session_service.get_session(uploaded.id)
        assert session.status == SessionStatus.COMPLETED
        assert session.translated_text == "Chapter one.\n\nThe cat meowed.\n\nThe dog barked too."
