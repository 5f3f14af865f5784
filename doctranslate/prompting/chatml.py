"""ChatML line protocol: parse, stringify and validate role-tagged messages.

Format::

    # comments are allowed between blocks
    <|im_start|>SYSTEM
    You are a translator.
    <|im_end|>
    <|im_start|>USER
    {{ current.source_text }}
    <|im_end|>

Parsing accumulates errors and keeps going instead of failing on the first
problem, so a template author sees every issue at once.
"""

from typing import Any

from pydantic import BaseModel, Field

from doctranslate.constants import ChatRole

START_TAG = "<|im_start|>"
END_TAG = "<|im_end|>"


class ChatMLError(ValueError):
    """Raised when messages cannot be serialized to ChatML."""


class ChatMessage(BaseModel):
    """A single role-tagged message."""

    role: ChatRole
    content: str


class ParseResult(BaseModel):
    """Outcome of parsing a ChatML document."""

    success: bool
    messages: list[ChatMessage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of validating a ChatML document."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def is_valid_role(role: Any) -> bool:
    """Check whether ``role`` is an accepted ChatML role name."""
    return isinstance(role, str) and role in ChatRole.all_values()


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def _is_start_tag_line(stripped: str) -> bool:
    return stripped.startswith(START_TAG)


def _is_end_tag_line(stripped: str) -> bool:
    return stripped == END_TAG


class _BlockState:
    """Mutable state of the line scanner (outside / inside a block)."""

    def __init__(self) -> None:
        self.inside = False
        self.role: ChatRole | None = None
        self.lines: list[str] = []

    def open(self, role: ChatRole | None) -> None:
        self.inside = True
        self.role = role
        self.lines = []

    def flush(self, messages: list[ChatMessage]) -> None:
        """Close the current block, emitting a message if its role was valid."""
        if not self.inside:
            return
        if self.role is not None:
            messages.append(ChatMessage(role=self.role, content="\n".join(self.lines)))
        self.inside = False
        self.role = None
        self.lines = []


def parse_chatml(text: Any) -> ParseResult:
    """Parse a ChatML document into ordered messages.

    Errors are accumulated rather than raised:
    - a start tag inside an open block flushes the open block
    - an end tag without a block is ignored
    - a block with an invalid role is consumed but emits no message
    - non-comment text outside a block is reported with its line number
    - an unclosed block at the end is flushed
    - zero messages is always an error

    Args:
        text: ChatML document

    Returns:
        ParseResult; ``success`` is True iff ``errors`` is empty
    """
    if not isinstance(text, str):
        return ParseResult(
            success=False,
            errors=[f"Invalid input type: expected string, got {type(text).__name__}"],
        )

    if not text.strip():
        return ParseResult(success=False, errors=["Empty input"])

    messages: list[ChatMessage] = []
    errors: list[str] = []
    block = _BlockState()

    for line_number, raw_line in enumerate(_normalize_newlines(text).split("\n"), start=1):
        stripped = raw_line.strip()

        if _is_start_tag_line(stripped):
            if block.inside:
                errors.append("Unexpected <|im_start|> before closing previous block.")
                block.flush(messages)

            role_name = stripped[len(START_TAG) :].strip()
            if is_valid_role(role_name):
                block.open(ChatRole(role_name))
            else:
                block.open(None)
                errors.append(f"Invalid role: '{role_name}'")
            continue

        if _is_end_tag_line(stripped):
            if block.inside:
                block.flush(messages)
            else:
                errors.append("Unexpected <|im_end|> without a matching start.")
            continue

        if block.inside:
            block.lines.append(raw_line)
            continue

        if stripped and not stripped.startswith("#"):
            errors.append(
                f"Unexpected text outside of message block at line {line_number}: "
                f"'{stripped}'. Prepend '#' to mark comments."
            )

    if block.inside:
        errors.append("Unclosed message block: missing <|im_end|>.")
        block.flush(messages)

    if not messages:
        errors.append("No valid ChatML messages found.")

    return ParseResult(success=not errors, messages=messages, errors=errors)


def stringify_chatml(messages: list[ChatMessage] | list[dict]) -> str:
    """Serialize messages to ChatML (inverse of :func:`parse_chatml`).

    Args:
        messages: ChatMessage models or ``{"role", "content"}`` dicts

    Returns:
        ChatML document, or ``""`` for an empty list

    Raises:
        ChatMLError: If a message has an invalid role or non-string content
    """
    if not messages:
        return ""

    blocks = []
    for index, message in enumerate(messages):
        if isinstance(message, ChatMessage):
            role, content = message.role.value, message.content
        elif isinstance(message, dict):
            role, content = message.get("role"), message.get("content")
        else:
            role = getattr(message, "role", None)
            content = getattr(message, "content", None)

        if not is_valid_role(role):
            raise ChatMLError(f"Invalid role '{role}' at message index {index}")
        if not isinstance(content, str):
            raise ChatMLError(
                f"Invalid content type at message index {index}: "
                f"expected string, got {type(content).__name__}"
            )

        blocks.append(f"{START_TAG}{role}\n{content}\n{END_TAG}")

    return "\n".join(blocks)


def validate_chatml(text: str) -> ValidationResult:
    """Validate document shape and report warnings for empty messages.

    Checks start/end tag balance and that the first and last non-comment
    lines are a start and an end tag, then appends every parse error.
    A blank document is considered valid.

    Args:
        text: ChatML document

    Returns:
        ValidationResult with errors and non-fatal warnings
    """
    if not text.strip():
        return ValidationResult(is_valid=True)

    errors: list[str] = []
    warnings: list[str] = []

    start_count = text.count(START_TAG)
    end_count = text.count(END_TAG)

    if start_count != end_count:
        errors.append(f"Tag mismatch: {start_count} start tags, {end_count} end tags")

    if start_count == 0:
        errors.append("No messages found: missing <|im_start|> tags.")

    significant = [
        line.strip()
        for line in _normalize_newlines(text).split("\n")
        if line.strip() and not line.strip().startswith("#")
    ]
    if significant:
        if not _is_start_tag_line(significant[0]):
            errors.append("Input must start with <|im_start|> tag (ignoring comments).")
        if not _is_end_tag_line(significant[-1]):
            errors.append("Input must end with <|im_end|> tag (ignoring comments).")

    result = parse_chatml(text)
    errors.extend(result.errors)

    for message in result.messages:
        if not message.content.strip():
            warnings.append(f"Empty message found: role '{message.role.value}'")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def merge_consecutive_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Concatenate adjacent messages that share a role.

    Contents are joined without a separator. The input list is not mutated.

    Args:
        messages: Ordered messages

    Returns:
        New list with runs of same-role messages merged
    """
    merged: list[ChatMessage] = []
    for message in messages:
        if merged and merged[-1].role == message.role:
            last = merged[-1]
            merged[-1] = ChatMessage(role=last.role, content=last.content + message.content)
        else:
            merged.append(ChatMessage(role=message.role, content=message.content))
    return merged


__all__ = [
    "START_TAG",
    "END_TAG",
    "ChatMLError",
    "ChatMessage",
    "ParseResult",
    "ValidationResult",
    "is_valid_role",
    "parse_chatml",
    "stringify_chatml",
    "validate_chatml",
    "merge_consecutive_messages",
]
