"""Prompt construction: templates, ChatML and provider-neutral turns."""

from doctranslate.prompting.adapter import ConvertedMessages, Turn, to_turns
from doctranslate.prompting.builder import PromptBuildResult, build_prompt, build_prompt_for_chunk
from doctranslate.prompting.chatml import (
    ChatMessage,
    ChatMLError,
    ParseResult,
    ValidationResult,
    is_valid_role,
    merge_consecutive_messages,
    parse_chatml,
    stringify_chatml,
    validate_chatml,
)
from doctranslate.prompting.context import (
    ChunkInfo,
    SessionInfo,
    TranslationContext,
    build_translation_context,
)
from doctranslate.prompting.renderer import TemplateRenderer, TemplateRenderError, render_template

__all__ = [
    # ChatML
    "ChatMessage",
    "ChatMLError",
    "ParseResult",
    "ValidationResult",
    "is_valid_role",
    "merge_consecutive_messages",
    "parse_chatml",
    "stringify_chatml",
    "validate_chatml",
    # Context and rendering
    "ChunkInfo",
    "SessionInfo",
    "TranslationContext",
    "build_translation_context",
    "TemplateRenderer",
    "TemplateRenderError",
    "render_template",
    # Turns
    "ConvertedMessages",
    "Turn",
    "to_turns",
    # Builder
    "PromptBuildResult",
    "build_prompt",
    "build_prompt_for_chunk",
]
