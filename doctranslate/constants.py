"""Type-safe constants for sessions, chunks and ChatML roles.

Enums replace the magic status strings stored in the database and sent
over the event stream.
"""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle states of a translation session."""

    DRAFT = "draft"
    READY = "ready"
    TRANSLATING = "translating"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def resumable(cls) -> frozenset["SessionStatus"]:
        """States a stopped run can be resumed from."""
        return frozenset({cls.PAUSED, cls.FAILED})

    @classmethod
    def startable(cls) -> frozenset["SessionStatus"]:
        """States a fresh run can be started from."""
        return frozenset({cls.READY, cls.PAUSED, cls.FAILED})


class ChunkStatus(StrEnum):
    """Lifecycle states of a single chunk."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def outstanding(cls) -> frozenset["ChunkStatus"]:
        """States picked up by a batch run."""
        return frozenset({cls.PENDING, cls.FAILED})


class ChatRole(StrEnum):
    """Roles accepted inside a ChatML start tag."""

    SYSTEM = "SYSTEM"
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    MODEL = "MODEL"
    ALTERNATIVE = "ALTERNATIVE"

    @classmethod
    def all_values(cls) -> set[str]:
        """Return all valid role names.

        Returns:
            Set of valid role strings
        """
        return {role.value for role in cls}


class TurnRole(StrEnum):
    """Provider-neutral conversation roles."""

    USER = "user"
    MODEL = "model"


__all__ = ["SessionStatus", "ChunkStatus", "ChatRole", "TurnRole"]
