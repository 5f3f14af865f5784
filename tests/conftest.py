"""Shared test fixtures for doctranslate tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest

from doctranslate.errors import ProviderError
from doctranslate.events import EventPublisher, TranslationEvent
from doctranslate.llm import Generation, Usage
from doctranslate.models import Chunk, Session
from doctranslate.orchestrator import TranslationOrchestrator
from doctranslate.prompting import Turn
from doctranslate.sessions import SessionService
from doctranslate.storage import TranslationDB
from doctranslate.templates import TemplateStore

SAMPLE_TEMPLATE = """---
title: Test Template
sourceLanguage: ja
targetLanguage: en
description: Test translation template
---
# System prompt
<|im_start|>SYSTEM
Translate from Japanese to English.
{% if session.custom_dict %}Dictionary: {{ session.custom_dict }}{% endif %}
<|im_end|>
{% if hasPrevious() %}
<|im_start|>USER
{{ previous.source_text }}
<|im_end|>
<|im_start|>MODEL
{{ previous.translated_text }}
<|im_end|>
{% endif %}
<|im_start|>USER
{{ current.source_text }}
<|im_end|>
"""


class StubLLMClient:
    """LLM client that answers "S<n>" with "T<n>".

    The last user turn is the chunk source text. Texts listed in
    ``failures`` raise a ProviderError that many times before succeeding.
    """

    def __init__(
        self,
        failures: dict[str, int] | None = None,
        respond: Callable[[str], str] | None = None,
        on_call: Callable[[str], None] | None = None,
    ):
        self.failures = dict(failures or {})
        self.respond = respond or (lambda text: text.replace("S", "T", 1))
        self.on_call = on_call
        self.calls: list[tuple[str | None, list[Turn]]] = []

    async def generate_content(
        self, turns: list[Turn], system_instruction: str | None = None
    ) -> Generation:
        self.calls.append((system_instruction, turns))
        text = turns[-1].text
        if self.on_call is not None:
            self.on_call(text)
        if self.failures.get(text):
            self.failures[text] -= 1
            raise ProviderError("Quota exceeded", code=429, status="RESOURCE_EXHAUSTED")
        return Generation(text=self.respond(text), usage=Usage(prompt=10, completion=5, total=15))


class RecordingEventSink(EventPublisher):
    """Keep every published event in order."""

    def __init__(self):
        self.events: list[TranslationEvent] = []

    def publish(self, event: TranslationEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list[TranslationEvent]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[TranslationDB, None, None]:
    """Temporary database for testing."""
    db_path = tmp_path / "test.db"
    db = TranslationDB(db_path=db_path)
    yield db


@pytest.fixture
def session_service(temp_db) -> SessionService:
    return SessionService(temp_db)


@pytest.fixture
def template_store() -> TemplateStore:
    store = TemplateStore()
    store.register_document("test", SAMPLE_TEMPLATE)
    return store


@pytest.fixture
def stub_client() -> StubLLMClient:
    return StubLLMClient()


@pytest.fixture
def recorder() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def orchestrator(session_service, template_store, recorder, stub_client) -> TranslationOrchestrator:
    """Orchestrator wired to the stub client and recording sink."""
    return TranslationOrchestrator(
        session_service,
        template_store,
        events=recorder,
        client_factory=lambda config: stub_client,
    )


@pytest.fixture
def ready_session(session_service) -> Session:
    """A ready session with three chunks: S0, S1, S2."""
    session_service.update_translation_config(chunk_size=5)
    session = session_service.create_session("Test Novel", custom_dict="猫=cat")
    upload = session_service.upload_and_chunk(session.id, "novel.txt", "S0\n\nS1\n\nS2")
    assert upload.total_chunks == 3
    return upload.session


@pytest.fixture
def session_chunks(session_service, ready_session) -> list[Chunk]:
    return session_service.get_chunks(ready_session.id)
