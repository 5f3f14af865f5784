"""Translation progress events.

The orchestrator reports through an EventSink. Sinks are fire-and-forget:
emitting never blocks and never fails the translation loop.

Event types:
- chunk:start       a chunk was claimed for translation
- chunk:progress    a chunk reached completed or failed
- session:status    the session status changed
- session:complete  every chunk completed and the translation was assembled
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel, Field

from doctranslate.constants import ChunkStatus, SessionStatus
from doctranslate.models import Chunk, Progress, Session

logger = logging.getLogger(__name__)

CHUNK_START = "chunk:start"
CHUNK_PROGRESS = "chunk:progress"
SESSION_STATUS = "session:status"
SESSION_COMPLETE = "session:complete"


def percent_of(part: int, total: int) -> int:
    """Whole percentage, halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return math.floor(part * 100 / total + 0.5)


def calculate_progress(chunks: Iterable[Chunk]) -> Progress:
    """Progress counters over a chunk list.

    Processing chunks count as pending.
    """
    completed = failed = pending = total = 0
    for chunk in chunks:
        total += 1
        if chunk.status == ChunkStatus.COMPLETED:
            completed += 1
        elif chunk.status == ChunkStatus.FAILED:
            failed += 1
        else:
            pending += 1
    return Progress(
        completed=completed,
        failed=failed,
        pending=pending,
        total=total,
        percent=percent_of(completed, total),
    )


class TranslationEvent(BaseModel):
    """Serializable event envelope."""

    type: str
    session_id: str
    data: dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Format as a server-sent event."""
        return f"event: {self.type}\ndata: {self.model_dump_json()}\n\n"


class EventSink(Protocol):
    """Receiver of orchestrator events."""

    def chunk_start(self, session_id: str, chunk_id: str, order: int) -> None: ...

    def chunk_progress(self, session_id: str, chunk: Chunk, progress: Progress) -> None: ...

    def session_status(self, session_id: str, status: SessionStatus, progress: Progress) -> None: ...

    def session_complete(self, session_id: str, session: Session) -> None: ...


class NullEventSink:
    """Discard all events."""

    def chunk_start(self, session_id: str, chunk_id: str, order: int) -> None:
        pass

    def chunk_progress(self, session_id: str, chunk: Chunk, progress: Progress) -> None:
        pass

    def session_status(self, session_id: str, status: SessionStatus, progress: Progress) -> None:
        pass

    def session_complete(self, session_id: str, session: Session) -> None:
        pass


class EventPublisher(ABC):
    """Abstract sink that turns each callback into a TranslationEvent.

    Subclasses implement :meth:`publish`.
    """

    @abstractmethod
    def publish(self, event: TranslationEvent) -> None:
        """Deliver one event."""

    def chunk_start(self, session_id: str, chunk_id: str, order: int) -> None:
        self.publish(
            TranslationEvent(
                type=CHUNK_START,
                session_id=session_id,
                data={"chunk_id": chunk_id, "order": order},
            )
        )

    def chunk_progress(self, session_id: str, chunk: Chunk, progress: Progress) -> None:
        self.publish(
            TranslationEvent(
                type=CHUNK_PROGRESS,
                session_id=session_id,
                data={
                    "chunk": chunk.model_dump(mode="json"),
                    "progress": progress.model_dump(),
                },
            )
        )

    def session_status(self, session_id: str, status: SessionStatus, progress: Progress) -> None:
        self.publish(
            TranslationEvent(
                type=SESSION_STATUS,
                session_id=session_id,
                data={"status": status.value, "progress": progress.model_dump()},
            )
        )

    def session_complete(self, session_id: str, session: Session) -> None:
        self.publish(
            TranslationEvent(
                type=SESSION_COMPLETE,
                session_id=session_id,
                data={
                    "session": session.model_dump(mode="json"),
                    "translated_text": session.translated_text,
                },
            )
        )


class LoggingEventSink(EventPublisher):
    """Log events (used by the CLI)."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def publish(self, event: TranslationEvent) -> None:
        if event.type == CHUNK_PROGRESS:
            chunk = event.data["chunk"]
            progress = event.data["progress"]
            logger.log(
                self.level,
                f"Chunk {chunk['order']} {chunk['status']} "
                f"({progress['completed']}/{progress['total']}, {progress['percent']}%)",
            )
        elif event.type == SESSION_STATUS:
            logger.log(self.level, f"Session {event.session_id}: {event.data['status']}")
        elif event.type == SESSION_COMPLETE:
            logger.log(self.level, f"Session {event.session_id} complete")
        else:
            logger.debug(f"{event.type}: {event.data}")


class BroadcastEventSink(EventPublisher):
    """Fan events out to per-session asyncio queues (SSE subscribers).

    Must be used from the event loop thread. Full queues drop the event
    for that subscriber only.
    """

    def __init__(self, max_queue_size: int = 1000):
        self._max_queue_size = max_queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(session_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[session_id]

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    def publish(self, event: TranslationEvent) -> None:
        for queue in list(self._subscribers.get(event.session_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event.type} for slow subscriber of {event.session_id}")


__all__ = [
    "CHUNK_PROGRESS",
    "CHUNK_START",
    "SESSION_COMPLETE",
    "SESSION_STATUS",
    "BroadcastEventSink",
    "EventPublisher",
    "EventSink",
    "LoggingEventSink",
    "NullEventSink",
    "TranslationEvent",
    "calculate_progress",
    "percent_of",
]
