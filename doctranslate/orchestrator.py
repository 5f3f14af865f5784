"""Translation orchestrator: drives chunk and session lifecycles.

Session states::

    draft -(upload)-> ready -(start)-> translating -(pause)-> paused
    translating -> completed | failed
    paused / failed -(resume)-> translating

Chunk states::

    pending -> processing -> completed | failed
    failed -(retry)-> pending

Within one run chunks are translated strictly in order, one LLM call at a
time. Two sources of truth are kept apart:

- the session status is re-read from storage before every chunk and is
  the only cancellation signal (pause is cooperative; an in-flight call
  always finishes)
- chunk content for rendering comes from a snapshot loaded once per run
  and patched with each persisted result, so a chunk sees the translation
  its predecessor got earlier in the same run

Only one operation (batch run or single-chunk translation) may hold a
session at a time; a second one is rejected with ValidationError.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.errors import PromptBuildError, ProviderError, ValidationError
from doctranslate.events import EventSink, NullEventSink, calculate_progress
from doctranslate.llm import LLMClient, client_from_config
from doctranslate.models import Chunk, ChunkResult, Session, Template, TranslationConfig, TranslationProgress
from doctranslate.prompting import build_prompt_for_chunk
from doctranslate.sessions import SessionService
from doctranslate.templates import TemplateStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[TranslationConfig], LLMClient]

# HTML comments left in model output (template markers, notes)
COMMENT_PATTERN = re.compile(r"<!--[\s\S]*?-->")

TRANSLATION_SEPARATOR = "\n\n"


def post_process_translation(text: str) -> str:
    """Strip ``<!-- ... -->`` comments and surrounding whitespace."""
    return COMMENT_PATTERN.sub("", text).strip()


class TranslationOrchestrator:
    """Coordinate LLM calls, persistence and events for translation sessions.

    Args:
        sessions: Session service (owns the database)
        templates: Template registry
        events: Event sink (defaults to discarding events)
        client_factory: Builds an LLM client from the persisted config;
            called once per run
    """

    def __init__(
        self,
        sessions: SessionService,
        templates: TemplateStore,
        events: EventSink | None = None,
        client_factory: ClientFactory = client_from_config,
    ):
        self.sessions = sessions
        self.db = sessions.db
        self.templates = templates
        self.events = events or NullEventSink()
        self._client_factory = client_factory
        self._active: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}

    # =========================================================================
    # Single-flight
    # =========================================================================

    def is_running(self, session_id: str) -> bool:
        """True while a batch run or chunk translation holds the session."""
        return session_id in self._active

    def _acquire(self, session_id: str) -> None:
        if session_id in self._active:
            raise ValidationError(f"Translation already running for session {session_id}")
        self._active.add(session_id)

    def _release(self, session_id: str) -> None:
        self._active.discard(session_id)

    @contextmanager
    def _claim(self, session_id: str) -> Iterator[None]:
        self._acquire(session_id)
        try:
            yield
        finally:
            self._release(session_id)

    def _launch(self, session_id: str, template_id: str) -> asyncio.Task:
        """Claim the session and run the batch in a background task."""
        self._acquire(session_id)
        task = asyncio.create_task(
            self._background_run(session_id, template_id),
            name=f"translate-{session_id}",
        )
        self._tasks[session_id] = task
        return task

    async def _background_run(self, session_id: str, template_id: str) -> None:
        try:
            await self._run_batch(session_id, template_id)
        except asyncio.CancelledError:
            self._mark_interrupted(session_id)
            raise
        except Exception as e:
            logger.exception(f"Translation run failed for session {session_id}: {e}")
        finally:
            self._release(session_id)
            self._tasks.pop(session_id, None)

    async def wait(self, session_id: str) -> None:
        """Wait for the session's background run, if any, to finish."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Cancel all background runs and release their sessions."""
        tasks = dict(self._tasks)
        for task in tasks.values():
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        # A task cancelled before its first step never reaches its finally block
        for session_id in tasks:
            self._release(session_id)
            self._tasks.pop(session_id, None)

    # =========================================================================
    # Session-level operations
    # =========================================================================

    def start_translation(self, session_id: str, template_id: str) -> TranslationProgress:
        """Start translating a ready (or stopped) session in the background.

        Raises:
            NotFoundError: Unknown session or template
            ValidationError: Wrong state or a run is already active
        """
        session = self.sessions.get_session(session_id)
        self.templates.get_or_raise(template_id)
        if session.status not in SessionStatus.startable():
            raise ValidationError(f"Cannot start session in '{session.status}' state")
        self._launch(session_id, template_id)
        logger.info(f"Started translation of session {session_id} with template {template_id}")
        return self.sessions.get_progress(session_id)

    def pause_translation(self, session_id: str) -> Session:
        """Request a running session to stop after its in-flight chunk.

        Raises:
            NotFoundError: Unknown session
            ValidationError: Session is not translating
        """
        session = self.sessions.get_session(session_id)
        if session.status != SessionStatus.TRANSLATING:
            raise ValidationError(f"Cannot pause session in '{session.status}' state")

        session = self.db.update_session(session_id, status=SessionStatus.PAUSED)
        self.events.session_status(
            session_id, SessionStatus.PAUSED, calculate_progress(self.db.get_chunks(session_id))
        )
        logger.info(f"Pause requested for session {session_id}")
        return session

    def resume_translation(self, session_id: str, template_id: str) -> TranslationProgress:
        """Resume a paused or failed session in the background.

        Returns without waiting for the run.

        Raises:
            NotFoundError: Unknown session or template
            ValidationError: Wrong state, or the previous run has not
                stopped yet
        """
        session = self.sessions.get_session(session_id)
        self.templates.get_or_raise(template_id)
        if session.status not in SessionStatus.resumable():
            raise ValidationError(f"Cannot resume session in '{session.status}' state")
        self._launch(session_id, template_id)
        logger.info(f"Resumed translation of session {session_id}")
        return self.sessions.get_progress(session_id)

    async def translate_all_pending_chunks(self, session_id: str, template_id: str) -> list[ChunkResult]:
        """Translate every pending or failed chunk, in order, and wait.

        Returns:
            Results for the chunks attempted in this run

        Raises:
            NotFoundError: Unknown session or template
            ValidationError: A run is already active for the session
            PersistenceError: Storage failed (the run is aborted)
        """
        with self._claim(session_id):
            return await self._run_batch(session_id, template_id)

    async def _run_batch(self, session_id: str, template_id: str) -> list[ChunkResult]:
        session = self.sessions.get_session(session_id)
        template = self.templates.get_or_raise(template_id)
        snapshot = self._reset_stale_chunks(session_id, self.db.get_chunks(session_id))

        self._set_status(session_id, SessionStatus.TRANSLATING, snapshot)

        work = [c for c in snapshot if c.status in ChunkStatus.outstanding()]
        if not work:
            self._set_status(session_id, SessionStatus.COMPLETED, snapshot)
            return []

        try:
            client = self._create_client()
        except ProviderError:
            self._set_status(session_id, SessionStatus.FAILED, snapshot)
            raise

        logger.info(f"Translating session {session_id}: {len(work)}/{len(snapshot)} chunks outstanding")

        results: list[ChunkResult] = []
        for chunk in work:
            if self.db.get_session_status(session_id) == SessionStatus.PAUSED:
                logger.info(f"Session {session_id} paused after {len(results)} chunks")
                break

            result, updated = await self._translate_one(session, chunk, snapshot, template, client)
            results.append(result)
            snapshot = [updated if c.id == updated.id else c for c in snapshot]

        if self.db.get_session_status(session_id) == SessionStatus.PAUSED:
            return results

        assembled = None
        if len(results) < len(work):
            final = SessionStatus.PAUSED
        elif any(r.status == ChunkStatus.FAILED for r in results):
            final = SessionStatus.FAILED
        else:
            assembled = self._assemble_translation(session_id)
            if assembled is not None:
                final = SessionStatus.COMPLETED
            else:
                # A chunk changed outside this run; leave the session resumable
                logger.warning(f"Session {session_id} has unfinished chunks after its run")
                final = SessionStatus.PAUSED
                snapshot = self.db.get_chunks(session_id)

        self._set_status(session_id, final, snapshot)

        if assembled is not None:
            self.events.session_complete(session_id, assembled)

        failed = sum(1 for r in results if r.status == ChunkStatus.FAILED)
        logger.info(
            f"Session {session_id} finished as {final}: "
            f"{len(results) - failed} completed, {failed} failed"
        )
        return results

    # =========================================================================
    # Chunk-level operations
    # =========================================================================

    async def translate_chunk(
        self,
        chunk_id: str,
        template_id: str,
        custom_dict: str | None = None,
    ) -> Chunk:
        """Translate one chunk in isolation and return it reloaded.

        If this completes the last outstanding chunk, the session is
        assembled and marked completed.

        Args:
            chunk_id: Chunk to translate (any status)
            template_id: Template to render
            custom_dict: Overrides the session's custom dictionary for
                this call only

        Raises:
            NotFoundError: Unknown chunk, session or template
            ValidationError: A run is already active for the session
        """
        chunk = self.sessions.get_chunk(chunk_id)
        session = self.sessions.get_session(chunk.session_id)
        template = self.templates.get_or_raise(template_id)

        with self._claim(session.id):
            if custom_dict:
                session = session.model_copy(update={"custom_dict": custom_dict})
            client = self._create_client()
            await self._translate_single(session, chunk, template, client)

        return self.sessions.get_chunk(chunk_id)

    async def retry_failed_chunk(self, chunk_id: str, template_id: str) -> Chunk:
        """Reset a failed chunk to pending and translate it again.

        The chunk stays failed if no LLM client can be built.

        Raises:
            NotFoundError: Unknown chunk, session or template
            ValidationError: The chunk is not failed, or a run is active
            ProviderError: The LLM client cannot be created
        """
        chunk = self.sessions.get_chunk(chunk_id)
        if chunk.status != ChunkStatus.FAILED:
            raise ValidationError("Chunk is not in failed state")

        session = self.sessions.get_session(chunk.session_id)
        template = self.templates.get_or_raise(template_id)

        with self._claim(session.id):
            client = self._create_client()
            chunk = self.db.update_chunk(chunk_id, status=ChunkStatus.PENDING)
            logger.info(
                f"Retrying chunk {chunk.order} of session {session.id} (attempt {chunk.retry_count + 1})"
            )
            await self._translate_single(session, chunk, template, client)

        return self.sessions.get_chunk(chunk_id)

    async def _translate_single(
        self, session: Session, chunk: Chunk, template: Template, client: LLMClient
    ) -> None:
        """Translate one chunk of a claimed session; assemble if it was the last."""
        snapshot = self.db.get_chunks(session.id)
        result, _ = await self._translate_one(session, chunk, snapshot, template, client)

        if result.status == ChunkStatus.COMPLETED:
            assembled = self._assemble_translation(session.id)
            if assembled is not None:
                self.events.session_status(
                    session.id,
                    SessionStatus.COMPLETED,
                    calculate_progress(self.db.get_chunks(session.id)),
                )
                self.events.session_complete(session.id, assembled)

    async def _translate_one(
        self,
        session: Session,
        chunk: Chunk,
        snapshot: list[Chunk],
        template: Template,
        client: LLMClient,
    ) -> tuple[ChunkResult, Chunk]:
        """Claim, render, call the LLM and persist one chunk.

        Prompt and provider failures mark the chunk failed; storage
        failures propagate.

        Returns:
            (result, persisted chunk)
        """
        started = time.monotonic()
        self.db.update_chunk(chunk.id, status=ChunkStatus.PROCESSING)
        self.events.chunk_start(session.id, chunk.id, chunk.order)

        try:
            prompt = build_prompt_for_chunk(template.content, session, chunk, snapshot)
            if not prompt.success:
                raise PromptBuildError(f"Prompt build failed: {', '.join(prompt.errors)}", prompt.errors)

            generation = await client.generate_content(
                prompt.messages.turns, system_instruction=prompt.messages.system_instruction
            )
        except asyncio.CancelledError:
            self.db.update_chunk(chunk.id, status=ChunkStatus.PENDING)
            logger.info(f"Chunk {chunk.order} of session {session.id} cancelled; back to pending")
            raise
        except (PromptBuildError, ProviderError) as e:
            logger.warning(f"Chunk {chunk.order} of session {session.id} failed: {e.message}")
            updated = self.db.update_chunk(
                chunk.id,
                status=ChunkStatus.FAILED,
                error_message=e.message,
                retry_count=chunk.retry_count + 1,
            )
            result = ChunkResult(
                chunk_id=chunk.id,
                order=chunk.order,
                status=ChunkStatus.FAILED,
                error_message=e.message,
            )
        else:
            translated = post_process_translation(generation.text)
            updated = self.db.update_chunk(
                chunk.id,
                status=ChunkStatus.COMPLETED,
                translated_text=translated,
                processing_time=int((time.monotonic() - started) * 1000),
                token_count=generation.usage.total,
                error_message=None,
            )
            result = ChunkResult(
                chunk_id=chunk.id,
                order=chunk.order,
                status=ChunkStatus.COMPLETED,
                translated_text=translated,
            )

        patched = [updated if c.id == updated.id else c for c in snapshot]
        self.events.chunk_progress(session.id, updated, calculate_progress(patched))
        return result, updated

    # =========================================================================
    # Internals
    # =========================================================================

    def _create_client(self) -> LLMClient:
        config = self.sessions.get_translation_config()
        try:
            return self._client_factory(config)
        except (ValueError, ImportError) as e:
            raise ProviderError(f"LLM client unavailable ({config.provider}/{config.model}): {e}") from e

    def _reset_stale_chunks(self, session_id: str, chunks: list[Chunk]) -> list[Chunk]:
        """Return chunks left processing by an interrupted run to pending.

        Only called while the session is claimed, so no other operation can
        be translating them.
        """
        stale = [c for c in chunks if c.status == ChunkStatus.PROCESSING]
        if not stale:
            return chunks
        for chunk in stale:
            self.db.update_chunk(chunk.id, status=ChunkStatus.PENDING)
        logger.warning(f"Reset {len(stale)} stale processing chunks of session {session_id}")
        return self.db.get_chunks(session_id)

    def _mark_interrupted(self, session_id: str) -> None:
        """Pause a session whose background run was cancelled mid-flight."""
        if self.db.get_session_status(session_id) != SessionStatus.TRANSLATING:
            return
        self._set_status(session_id, SessionStatus.PAUSED, self.db.get_chunks(session_id))
        logger.info(f"Translation of session {session_id} cancelled; session paused")

    def _set_status(self, session_id: str, status: SessionStatus, chunks: list[Chunk]) -> None:
        self.db.update_session(session_id, status=status)
        self.events.session_status(session_id, status, calculate_progress(chunks))

    def _assemble_translation(self, session_id: str) -> Session | None:
        """Join translations once every chunk is completed.

        Returns:
            The completed session, or None if some chunk is not completed
        """
        chunks = self.db.get_chunks(session_id)
        if not chunks or any(c.status != ChunkStatus.COMPLETED for c in chunks):
            return None
        translated = TRANSLATION_SEPARATOR.join(c.translated_text or "" for c in chunks)
        return self.db.update_session(
            session_id, translated_text=translated, status=SessionStatus.COMPLETED
        )


__all__ = ["ClientFactory", "TranslationOrchestrator", "post_process_translation"]
