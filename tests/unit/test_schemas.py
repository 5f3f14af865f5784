"""Tests for doctranslate.models.schemas."""

import pytest
from pydantic import ValidationError

from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.models import Chunk, ChunkResult, Session, Template, TranslationConfig


class TestSession:
    def test_defaults(self):
        session = Session(id="s1", title="Novel")

        assert session.status == SessionStatus.DRAFT
        assert session.total_chunks == 0
        assert session.created_at.tzinfo is not None

    def test_status_serializes_as_value(self):
        data = Session(id="s1", title="Novel", status=SessionStatus.READY).model_dump(mode="json")
        assert data["status"] == "ready"


class TestChunk:
    def test_order_must_be_non_negative(self):
        with pytest.raises(ValidationError):
            Chunk(id="c1", session_id="s1", order=-1, source_text="x")

    def test_status_from_string(self):
        chunk = Chunk(id="c1", session_id="s1", order=0, source_text="x", status="failed")
        assert chunk.status is ChunkStatus.FAILED


class TestTemplate:
    def test_is_frozen(self):
        template = Template(
            id="t", title="T", source_language="ja", target_language="en", content="body"
        )
        with pytest.raises(ValidationError):
            template.content = "changed"


class TestTranslationConfig:
    @pytest.mark.parametrize(
        "field,value",
        [("chunk_size", 0), ("temperature", 2.5), ("top_p", 1.5), ("top_k", 0)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            TranslationConfig(**{field: value})


class TestChunkResult:
    def test_only_terminal_statuses(self):
        ChunkResult(chunk_id="c1", order=0, status=ChunkStatus.COMPLETED, translated_text="T")
        with pytest.raises(ValidationError):
            ChunkResult(chunk_id="c1", order=0, status=ChunkStatus.PENDING)
