"""Jinja2 template renderer with translation helpers.

Rendering is pure: the output depends only on the template text and the
TranslationContext. Autoescaping is off since the output is ChatML, not
HTML.
"""

import logging
from typing import Any

from jinja2 import ChainableUndefined, Environment, StrictUndefined, TemplateError

from doctranslate.prompting.context import TranslationContext
from doctranslate.prompting.helpers import helper_globals

logger = logging.getLogger(__name__)


class TemplateRenderError(Exception):
    """Raised when a template cannot be compiled or rendered."""


class LenientUndefined(ChainableUndefined):
    """Undefined that renders as '' even when called like a helper."""

    jinja_pass_arg = None

    def __call__(self, *args: Any, **kwargs: Any) -> "LenientUndefined":
        return self


class StrictHelperUndefined(StrictUndefined):
    """Undefined that fails on any use, naming unknown helpers explicitly."""

    jinja_pass_arg = None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        raise TemplateError(f"Unknown helper: {self._undefined_name}")


class TemplateRenderer:
    """Render ChatML templates against a TranslationContext.

    Args:
        strict: Raise on unknown variables and helpers instead of
            rendering them as empty strings.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._env = Environment(
            undefined=StrictHelperUndefined if strict else LenientUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def registered_helpers(self, context: TranslationContext | None = None) -> list[str]:
        """Names of helpers a template can call."""
        return sorted(helper_globals(context))

    def render(
        self,
        template: str,
        context: TranslationContext | None = None,
        variables: dict | None = None,
    ) -> str:
        """Render a template.

        Args:
            template: Jinja2 template text
            context: Chunk context (binds translation helpers and exposes
                session/current/previous/chunks/current_order)
            variables: Extra variables, overriding context variables

        Returns:
            Rendered text

        Raises:
            TemplateRenderError: On syntax errors, undefined names in strict
                mode, or helper failures
        """
        namespace = context.template_variables() if context is not None else {}
        namespace.update(variables or {})

        try:
            compiled = self._env.from_string(template, globals=helper_globals(context))
            return compiled.render(**namespace)
        except (TemplateError, TypeError, ValueError) as e:
            logger.debug(f"Template render failed: {e}")
            raise TemplateRenderError(f"Template parsing error: {e}") from e


def render_template(template: str, context: TranslationContext | None = None, strict: bool = False) -> str:
    """Render with a fresh renderer."""
    return TemplateRenderer(strict=strict).render(template, context)


__all__ = ["TemplateRenderError", "TemplateRenderer", "render_template"]
