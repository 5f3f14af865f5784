"""Per-chunk template context."""

from pydantic import BaseModel, Field

from doctranslate.constants import ChunkStatus
from doctranslate.models import Chunk, Session


class SessionInfo(BaseModel):
    id: str
    title: str
    custom_dict: str | None = None
    memo: str | None = None


class ChunkInfo(BaseModel):
    """Sibling chunk as seen by template helpers."""

    order: int
    source_text: str
    translated_text: str | None = None
    status: ChunkStatus = ChunkStatus.PENDING


class CurrentChunk(BaseModel):
    order: int
    source_text: str


class PreviousChunk(BaseModel):
    order: int
    source_text: str
    translated_text: str


class TranslationContext(BaseModel):
    """Everything a template can see while rendering one chunk."""

    session: SessionInfo
    current: CurrentChunk
    previous: PreviousChunk | None = None
    chunks: list[ChunkInfo] = Field(default_factory=list)
    current_order: int = 0

    def find_chunk(self, order: int) -> ChunkInfo | None:
        """Return the sibling with the given order, if any."""
        for chunk in self.chunks:
            if chunk.order == order:
                return chunk
        return None

    def template_variables(self) -> dict:
        """Variables exposed to the template namespace."""
        return {
            "session": self.session,
            "current": self.current,
            "previous": self.previous,
            "chunks": self.chunks,
            "current_order": self.current_order,
        }


def build_translation_context(
    session: Session | SessionInfo,
    current: Chunk | CurrentChunk,
    chunks: list[Chunk] | list[ChunkInfo],
) -> TranslationContext:
    """Build the render context for one chunk.

    ``previous`` is populated only when the chunk at ``order - 1`` exists,
    is completed and carries a translation.

    Args:
        session: Owning session (only id/title/custom_dict/memo are used)
        current: Chunk being translated
        chunks: All chunks of the session (the caller's snapshot)

    Returns:
        TranslationContext for rendering
    """
    infos = [
        ChunkInfo(
            order=c.order,
            source_text=c.source_text,
            translated_text=c.translated_text,
            status=c.status,
        )
        for c in chunks
    ]

    previous = None
    for info in infos:
        if (
            info.order == current.order - 1
            and info.status == ChunkStatus.COMPLETED
            and info.translated_text is not None
        ):
            previous = PreviousChunk(
                order=info.order,
                source_text=info.source_text,
                translated_text=info.translated_text,
            )
            break

    return TranslationContext(
        session=SessionInfo(
            id=session.id,
            title=session.title,
            custom_dict=session.custom_dict,
            memo=session.memo,
        ),
        current=CurrentChunk(order=current.order, source_text=current.source_text),
        previous=previous,
        chunks=infos,
        current_order=current.order,
    )
