"""Pydantic models for persisted rows and operation results.

Field names follow Python conventions; rows are stored with the same
names in SQLite (see storage/database.py).
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from doctranslate.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MODELS,
    DEFAULT_PROVIDER,
    DEFAULT_TEMPERATURE,
)
from doctranslate.constants import ChunkStatus, SessionStatus


def utcnow() -> datetime:
    """Timezone-aware current time used for created_at/updated_at."""
    return datetime.now(timezone.utc)


# =============================================================================
# Persisted rows
# =============================================================================


class Session(BaseModel):
    """One document-translation job."""

    id: str
    title: str
    memo: str | None = None
    custom_dict: str | None = None
    original_file_name: str | None = None
    source_text: str | None = None
    translated_text: str | None = None
    status: SessionStatus = SessionStatus.DRAFT
    total_chunks: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Chunk(BaseModel):
    """A bounded slice of a session's source text."""

    id: str
    session_id: str
    order: int = Field(ge=0)
    source_text: str
    translated_text: str | None = None
    status: ChunkStatus = ChunkStatus.PENDING
    error_message: str | None = None
    retry_count: int = 0
    token_count: int | None = None
    processing_time: int | None = Field(default=None, description="Milliseconds")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Template(BaseModel):
    """A ChatML prompt template. Immutable once loaded."""

    id: str
    title: str
    source_language: str
    target_language: str
    description: str | None = None
    content: str

    model_config = {"frozen": True}


class TranslationConfig(BaseModel):
    """Runtime translation settings (single persisted row)."""

    provider: str = DEFAULT_PROVIDER
    model: str = Field(default_factory=lambda: DEFAULT_MODELS.get(DEFAULT_PROVIDER, ""))
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    max_output_tokens: int | None = Field(default=DEFAULT_MAX_OUTPUT_TOKENS, gt=0)
    top_p: float | None = Field(default=None, ge=0, le=1)
    top_k: int | None = Field(default=None, gt=0)
    updated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# Operation results
# =============================================================================


class ChunkResult(BaseModel):
    """Outcome of one chunk translation attempt."""

    chunk_id: str
    order: int
    status: Literal[ChunkStatus.COMPLETED, ChunkStatus.FAILED]
    translated_text: str | None = None
    error_message: str | None = None


class Progress(BaseModel):
    """Session-wide progress counters sent with events.

    ``pending`` counts both pending and processing chunks.
    """

    completed: int = 0
    failed: int = 0
    pending: int = 0
    total: int = 0
    percent: int = 0


class TranslationProgress(BaseModel):
    """Detailed progress snapshot for one session."""

    session_id: str
    status: SessionStatus
    total: int
    completed: int
    failed: int
    pending: int
    processing: int
    percent: int


class UploadResult(BaseModel):
    """Result of uploading and chunking a document."""

    session: Session
    total_chunks: int
    original_file_name: str
    file_size: int = Field(description="UTF-8 byte size of the content")
    char_count: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ChunkPage(BaseModel):
    chunks: list[Chunk]
    pagination: Pagination
