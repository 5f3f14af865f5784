"""Session service: CRUD, upload and chunking, progress and download.

Everything here is a synchronous, short database operation. The long-running
translation loop lives in orchestrator.py.
"""

import logging
import math
import uuid
from pathlib import PurePath

from doctranslate.chunker import split_into_chunks
from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.errors import NotFoundError, ValidationError
from doctranslate.events import percent_of
from doctranslate.models import (
    Chunk,
    ChunkPage,
    Pagination,
    Session,
    TranslationConfig,
    TranslationProgress,
    UploadResult,
    utcnow,
)
from doctranslate.storage import TranslationDB

logger = logging.getLogger(__name__)

TRANSLATED_SUFFIX = "_translated"
EDITABLE_SESSION_FIELDS = ("title", "memo", "custom_dict")
CONFIG_FIELDS = ("provider", "model", "chunk_size", "temperature", "max_output_tokens", "top_p", "top_k")


def new_id() -> str:
    return uuid.uuid4().hex


def translated_file_name(original_name: str) -> str:
    """``novel.md`` -> ``novel_translated.md``; no extension -> ``.txt``.

    A leading dot (``.env``) is not treated as an extension separator.
    """
    last_dot = original_name.rfind(".")
    if last_dot > 0:
        return f"{original_name[:last_dot]}{TRANSLATED_SUFFIX}{original_name[last_dot:]}"
    return f"{original_name}{TRANSLATED_SUFFIX}.txt"


class SessionService:
    """Session-level operations over a TranslationDB."""

    def __init__(self, db: TranslationDB):
        self.db = db

    # =========================================================================
    # Translation config
    # =========================================================================

    def get_translation_config(self) -> TranslationConfig:
        """Return the persisted config, creating it from env defaults if missing."""
        config = self.db.get_config()
        if config is None:
            config = self.db.save_config(TranslationConfig())
            logger.info(f"Created default translation config ({config.provider}/{config.model})")
        return config

    def update_translation_config(self, **fields) -> TranslationConfig:
        """Update selected config fields; ``None`` values are ignored.

        Raises:
            ValidationError: On unknown fields or out-of-range values
        """
        unknown = sorted(set(fields) - set(CONFIG_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown config fields: {', '.join(unknown)}")

        current = self.get_translation_config()
        changes = {k: v for k, v in fields.items() if v is not None}
        data = {**current.model_dump(), **changes, "updated_at": utcnow()}
        try:
            updated = TranslationConfig.model_validate(data)
        except ValueError as e:
            raise ValidationError(f"Invalid translation config: {e}") from e
        return self.db.save_config(updated)

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(
        self,
        title: str,
        memo: str | None = None,
        custom_dict: str | None = None,
    ) -> Session:
        if not title or not title.strip():
            raise ValidationError("Session title is required")
        session = Session(id=new_id(), title=title.strip(), memo=memo, custom_dict=custom_dict)
        self.db.insert_session(session)
        logger.info(f"Created session {session.id}: {session.title}")
        return session

    def get_session(self, session_id: str) -> Session:
        """Load a session.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = self.db.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def list_sessions(self, limit: int | None = None) -> list[Session]:
        return self.db.list_sessions(limit=limit)

    def update_session(self, session_id: str, **fields) -> Session:
        """Update title, memo or custom_dict.

        Fields passed as ``None`` are left unchanged.
        """
        unknown = sorted(set(fields) - set(EDITABLE_SESSION_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update session fields: {', '.join(unknown)}")
        changes = {k: v for k, v in fields.items() if v is not None}
        if "title" in changes and not changes["title"].strip():
            raise ValidationError("Session title is required")

        if not changes:
            return self.get_session(session_id)
        session = self.db.update_session(session_id, **changes)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def delete_session(self, session_id: str) -> None:
        if not self.db.delete_session(session_id):
            raise NotFoundError("Session not found")
        logger.info(f"Deleted session {session_id}")

    # =========================================================================
    # Upload and chunking
    # =========================================================================

    def upload_and_chunk(self, session_id: str, file_name: str, content: str) -> UploadResult:
        """Replace a session's source text and chunks.

        Prior chunks (and any translation) are discarded in the same
        transaction that inserts the new chunks; the session becomes ready.

        Raises:
            ValidationError: If the content yields no chunks
            NotFoundError: If the session does not exist
        """
        config = self.get_translation_config()
        texts = split_into_chunks(content, config.chunk_size)
        if not texts:
            raise ValidationError("No content to translate")

        # Existence check first so a missing session is reported as 404
        self.get_session(session_id)

        now = utcnow()
        chunks = [
            Chunk(
                id=new_id(),
                session_id=session_id,
                order=index,
                source_text=text,
                created_at=now,
                updated_at=now,
            )
            for index, text in enumerate(texts)
        ]

        session = self.db.replace_chunks(
            session_id,
            chunks,
            original_file_name=file_name,
            source_text=content,
            translated_text=None,
            status=SessionStatus.READY,
            total_chunks=len(chunks),
            updated_at=now,
        )
        logger.info(
            f"Chunked {file_name} for session {session_id}: "
            f"{len(content)} chars -> {len(chunks)} chunks (size={config.chunk_size})"
        )

        return UploadResult(
            session=session,
            total_chunks=len(chunks),
            original_file_name=file_name,
            file_size=len(content.encode("utf-8")),
            char_count=len(content),
        )

    # =========================================================================
    # Chunks and progress
    # =========================================================================

    def get_chunks(self, session_id: str) -> list[Chunk]:
        return self.db.get_chunks(session_id)

    def get_chunk(self, chunk_id: str) -> Chunk:
        chunk = self.db.get_chunk(chunk_id)
        if chunk is None:
            raise NotFoundError("Chunk not found")
        return chunk

    def get_chunks_page(
        self,
        session_id: str,
        page: int = 1,
        limit: int = 50,
        status: ChunkStatus | None = None,
    ) -> ChunkPage:
        """One page of a session's chunks (pages start at 1)."""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        statuses = {status} if status else None
        counts = self.db.count_chunks_by_status(session_id)
        total = counts[status] if status else sum(counts.values())
        chunks = self.db.get_chunks(
            session_id, statuses=statuses, offset=(page - 1) * limit, limit=limit
        )
        return ChunkPage(
            chunks=chunks,
            pagination=Pagination(
                page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)
            ),
        )

    def get_progress(self, session_id: str) -> TranslationProgress:
        session = self.get_session(session_id)
        counts = self.db.count_chunks_by_status(session_id)
        total = sum(counts.values())
        completed = counts[ChunkStatus.COMPLETED]
        return TranslationProgress(
            session_id=session_id,
            status=session.status,
            total=total,
            completed=completed,
            failed=counts[ChunkStatus.FAILED],
            pending=counts[ChunkStatus.PENDING],
            processing=counts[ChunkStatus.PROCESSING],
            percent=percent_of(completed, total),
        )

    def get_partial_translation(self, session_id: str) -> str:
        """Completed chunks' translations in order, blank-line separated."""
        self.get_session(session_id)
        chunks = self.db.get_chunks(session_id, statuses={ChunkStatus.COMPLETED})
        return "\n\n".join(c.translated_text or "" for c in chunks)

    def get_translation_for_download(self, session_id: str) -> tuple[str, str]:
        """Return (content, file name) for the translated document.

        Content is built from completed chunks, so a partially translated
        session downloads what is done so far.
        """
        session = self.get_session(session_id)
        content = self.get_partial_translation(session_id)
        original_name = session.original_file_name or session.title
        return content, translated_file_name(PurePath(original_name).name or original_name)


__all__ = ["SessionService", "new_id", "translated_file_name"]
