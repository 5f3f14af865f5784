"""Translation API routes.

JSON endpoints over SessionService, TranslationOrchestrator and
TemplateStore. Business rules live in those services; errors they raise
are mapped to HTTP responses by the app's exception handler.
"""

import asyncio
import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel, Field

from doctranslate.constants import ChunkStatus
from doctranslate.events import BroadcastEventSink
from doctranslate.models import (
    Chunk,
    ChunkPage,
    Session,
    Template,
    TranslationConfig,
    TranslationProgress,
    UploadResult,
)
from doctranslate.orchestrator import TranslationOrchestrator
from doctranslate.sessions import SessionService
from doctranslate.templates import TemplateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["translation"])

SSE_KEEPALIVE_SECONDS = 15.0


# =============================================================================
# Request bodies
# =============================================================================


class CreateSessionRequest(BaseModel):
    title: str = Field(min_length=1)
    memo: str | None = None
    custom_dict: str | None = None


class UpdateSessionRequest(BaseModel):
    title: str | None = None
    memo: str | None = None
    custom_dict: str | None = None


class UploadRequest(BaseModel):
    file_name: str = Field(min_length=1)
    content: str


class TemplateRequest(BaseModel):
    template_id: str = Field(min_length=1)


class TranslateChunkRequest(TemplateRequest):
    custom_dict: str | None = None


class RegisterTemplateRequest(BaseModel):
    id: str = Field(min_length=1)
    document: str = Field(description="Template text with YAML front matter")


class UpdateConfigRequest(BaseModel):
    provider: str | None = None
    model: str | None = None
    chunk_size: int | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None


# =============================================================================
# Dependencies
# =============================================================================


def get_sessions(request: Request) -> SessionService:
    return request.app.state.sessions


def get_orchestrator(request: Request) -> TranslationOrchestrator:
    return request.app.state.orchestrator


def get_templates(request: Request) -> TemplateStore:
    return request.app.state.templates


def get_broadcaster(request: Request) -> BroadcastEventSink | None:
    return request.app.state.broadcaster


Sessions = Annotated[SessionService, Depends(get_sessions)]
Orchestrator = Annotated[TranslationOrchestrator, Depends(get_orchestrator)]
Templates = Annotated[TemplateStore, Depends(get_templates)]


# =============================================================================
# Sessions
# =============================================================================


@router.get("/sessions", response_model=list[Session])
async def list_sessions(sessions: Sessions):
    return sessions.list_sessions()


@router.post("/sessions", response_model=Session, status_code=201)
async def create_session(body: CreateSessionRequest, sessions: Sessions):
    return sessions.create_session(body.title, memo=body.memo, custom_dict=body.custom_dict)


@router.get("/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str, sessions: Sessions):
    return sessions.get_session(session_id)


@router.patch("/sessions/{session_id}", response_model=Session)
async def update_session(session_id: str, body: UpdateSessionRequest, sessions: Sessions):
    return sessions.update_session(session_id, **body.model_dump())


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, sessions: Sessions, orchestrator: Orchestrator):
    if orchestrator.is_running(session_id):
        raise HTTPException(status_code=409, detail="Translation is running for this session")
    sessions.delete_session(session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/upload", response_model=UploadResult)
async def upload(session_id: str, body: UploadRequest, sessions: Sessions, orchestrator: Orchestrator):
    if orchestrator.is_running(session_id):
        raise HTTPException(status_code=409, detail="Translation is running for this session")
    return sessions.upload_and_chunk(session_id, body.file_name, body.content)


@router.get("/sessions/{session_id}/chunks", response_model=ChunkPage)
async def list_chunks(
    session_id: str,
    sessions: Sessions,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    status: ChunkStatus | None = None,
):
    sessions.get_session(session_id)
    return sessions.get_chunks_page(session_id, page=page, limit=limit, status=status)


@router.get("/sessions/{session_id}/progress", response_model=TranslationProgress)
async def get_progress(session_id: str, sessions: Sessions):
    return sessions.get_progress(session_id)


@router.get("/sessions/{session_id}/partial")
async def get_partial(session_id: str, sessions: Sessions):
    return {"translated_text": sessions.get_partial_translation(session_id)}


@router.get("/sessions/{session_id}/download", response_class=PlainTextResponse)
async def download(session_id: str, sessions: Sessions):
    content, file_name = sessions.get_translation_for_download(session_id)
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"},
    )


# =============================================================================
# Translation control
# =============================================================================


@router.post("/sessions/{session_id}/start", response_model=TranslationProgress, status_code=202)
async def start(session_id: str, body: TemplateRequest, orchestrator: Orchestrator):
    return orchestrator.start_translation(session_id, body.template_id)


@router.post("/sessions/{session_id}/pause", response_model=Session)
async def pause(session_id: str, orchestrator: Orchestrator):
    return orchestrator.pause_translation(session_id)


@router.post("/sessions/{session_id}/resume", response_model=TranslationProgress, status_code=202)
async def resume(session_id: str, body: TemplateRequest, orchestrator: Orchestrator):
    return orchestrator.resume_translation(session_id, body.template_id)


@router.post("/chunks/{chunk_id}/translate", response_model=Chunk)
async def translate_chunk(chunk_id: str, body: TranslateChunkRequest, orchestrator: Orchestrator):
    return await orchestrator.translate_chunk(chunk_id, body.template_id, custom_dict=body.custom_dict)


@router.post("/chunks/{chunk_id}/retry", response_model=Chunk)
async def retry_chunk(chunk_id: str, body: TemplateRequest, orchestrator: Orchestrator):
    return await orchestrator.retry_failed_chunk(chunk_id, body.template_id)


@router.get("/sessions/{session_id}/events")
async def stream_events(
    session_id: str,
    request: Request,
    sessions: Sessions,
    broadcaster: Annotated[BroadcastEventSink | None, Depends(get_broadcaster)],
):
    """Server-sent events for one session."""
    if broadcaster is None:
        raise HTTPException(status_code=503, detail="Event stream not available")
    sessions.get_session(session_id)

    return StreamingResponse(
        event_stream(broadcaster, session_id, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def event_stream(
    broadcaster: BroadcastEventSink,
    session_id: str,
    request: Request,
    keepalive: float = SSE_KEEPALIVE_SECONDS,
):
    """Yield SSE frames until the client disconnects."""
    queue = broadcaster.subscribe(session_id)
    logger.debug(f"SSE subscriber joined session {session_id}")
    try:
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield event.to_sse()
    finally:
        broadcaster.unsubscribe(session_id, queue)
        logger.debug(f"SSE subscriber left session {session_id}")


# =============================================================================
# Templates and config
# =============================================================================


@router.get("/templates")
async def list_templates(templates: Templates):
    return templates.list()


@router.post("/templates", response_model=Template, status_code=201)
async def register_template(body: RegisterTemplateRequest, templates: Templates):
    return templates.register_document(body.id, body.document)


@router.get("/config", response_model=TranslationConfig)
async def get_config(sessions: Sessions):
    return sessions.get_translation_config()


@router.put("/config", response_model=TranslationConfig)
async def update_config(body: UpdateConfigRequest, sessions: Sessions):
    return sessions.update_translation_config(**body.model_dump())
