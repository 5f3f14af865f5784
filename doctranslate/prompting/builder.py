"""Prompt builder: context -> render -> parse -> adapt."""

import logging

from pydantic import BaseModel, Field

from doctranslate.models import Chunk, Session
from doctranslate.prompting.adapter import ConvertedMessages, to_turns
from doctranslate.prompting.chatml import parse_chatml
from doctranslate.prompting.context import TranslationContext, build_translation_context
from doctranslate.prompting.renderer import TemplateRenderer, TemplateRenderError

logger = logging.getLogger(__name__)


class PromptBuildResult(BaseModel):
    """Outcome of building the LLM input for one chunk.

    ``raw_chatml`` is the rendered document when rendering succeeded, kept
    for diagnostics even if parsing failed.
    """

    success: bool
    messages: ConvertedMessages = Field(default_factory=ConvertedMessages)
    errors: list[str] = Field(default_factory=list)
    raw_chatml: str | None = None


def build_prompt(template: str, context: TranslationContext, strict: bool = False) -> PromptBuildResult:
    """Render a template for one chunk and convert it to turns.

    Never raises for template or ChatML problems; they are reported in
    ``errors``.
    """
    try:
        rendered = TemplateRenderer(strict=strict).render(template, context)
    except TemplateRenderError as e:
        return PromptBuildResult(success=False, errors=[str(e)])

    parsed = parse_chatml(rendered)
    if not parsed.success:
        logger.debug(f"ChatML parse failed for chunk {context.current_order}: {parsed.errors}")
        return PromptBuildResult(success=False, errors=parsed.errors, raw_chatml=rendered)

    return PromptBuildResult(success=True, messages=to_turns(parsed.messages), raw_chatml=rendered)


def build_prompt_for_chunk(
    template: str,
    session: Session,
    chunk: Chunk,
    chunks: list[Chunk],
    strict: bool = False,
) -> PromptBuildResult:
    """Build the context from stored rows, then the prompt."""
    context = build_translation_context(session, chunk, chunks)
    return build_prompt(template, context, strict=strict)


__all__ = ["PromptBuildResult", "build_prompt", "build_prompt_for_chunk"]
