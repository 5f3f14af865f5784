"""Pydantic models for sessions, chunks, templates and results."""

from doctranslate.models.schemas import (
    Chunk,
    ChunkPage,
    ChunkResult,
    Pagination,
    Progress,
    Session,
    Template,
    TranslationConfig,
    TranslationProgress,
    UploadResult,
    utcnow,
)

__all__ = [
    # Persisted rows
    "Session",
    "Chunk",
    "Template",
    "TranslationConfig",
    # Results
    "ChunkResult",
    "Progress",
    "TranslationProgress",
    "UploadResult",
    "Pagination",
    "ChunkPage",
    "utcnow",
]
