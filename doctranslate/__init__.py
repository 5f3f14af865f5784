"""doctranslate - Chunked long-document translation with LLMs.

A document is split into ordered chunks, each chunk is rendered through a
ChatML prompt template with its neighbours as context, and the resulting
conversation is sent to a chat model. Sessions can be paused, resumed and
retried chunk by chunk.
"""

from doctranslate.chunker import split_into_chunks
from doctranslate.errors import (
    ErrorType,
    NotFoundError,
    PersistenceError,
    PromptBuildError,
    ProviderError,
    TranslationError,
    ValidationError,
)
from doctranslate.events import BroadcastEventSink, EventSink, LoggingEventSink
from doctranslate.orchestrator import TranslationOrchestrator
from doctranslate.sessions import SessionService
from doctranslate.storage import TranslationDB
from doctranslate.templates import TemplateStore

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "split_into_chunks",
    "SessionService",
    "TranslationOrchestrator",
    "TemplateStore",
    "TranslationDB",
    # Events
    "EventSink",
    "LoggingEventSink",
    "BroadcastEventSink",
    # Errors
    "ErrorType",
    "TranslationError",
    "ValidationError",
    "NotFoundError",
    "PromptBuildError",
    "ProviderError",
    "PersistenceError",
]
