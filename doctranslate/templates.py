"""Prompt template registry.

Templates are ChatML documents with a YAML front matter header::

    ---
    title: Japanese to Korean
    sourceLanguage: ja
    targetLanguage: ko
    description: Literary translation
    ---
    <|im_start|>SYSTEM
    ...
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from doctranslate.errors import NotFoundError
from doctranslate.models import Template

logger = logging.getLogger(__name__)

FRONT_MATTER_DELIMITER = "---"


class TemplateFormatError(ValueError):
    """Raised when a template document has malformed front matter.

    Attributes:
        kind: missing_opening_delimiter, missing_closing_delimiter or
            invalid_metadata
    """

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class TemplateMetadata(BaseModel):
    """Front matter fields (camelCase keys in the document)."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    source_language: str = Field(alias="sourceLanguage")
    target_language: str = Field(alias="targetLanguage")
    description: str | None = None


def parse_front_matter(text: str) -> tuple[str, str]:
    """Split a document into raw front matter and body.

    The first line must be ``---``; the front matter ends at the next line
    that is ``---`` (surrounding whitespace ignored).

    Returns:
        Tuple of (front matter text, body text)

    Raises:
        TemplateFormatError: If either delimiter is missing
    """
    lines = text.replace("\r\n", "\n").split("\n")

    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        raise TemplateFormatError(
            "missing_opening_delimiter",
            f"Front Matter must start with '{FRONT_MATTER_DELIMITER}'",
        )

    for index in range(1, len(lines)):
        if lines[index].strip() == FRONT_MATTER_DELIMITER:
            return "\n".join(lines[1:index]), "\n".join(lines[index + 1 :])

    raise TemplateFormatError(
        "missing_closing_delimiter",
        f"Front Matter must end with '{FRONT_MATTER_DELIMITER}'",
    )


def load_template_document(template_id: str, text: str) -> Template:
    """Parse a front-matter document into a Template.

    Raises:
        TemplateFormatError: On missing delimiters or invalid metadata
    """
    header, body = parse_front_matter(text)

    try:
        data = yaml.safe_load(header) or {}
    except yaml.YAMLError as e:
        raise TemplateFormatError("invalid_metadata", f"Invalid YAML front matter: {e}") from e

    if not isinstance(data, dict):
        raise TemplateFormatError("invalid_metadata", "Front matter must be a mapping")

    try:
        metadata = TemplateMetadata.model_validate(data)
    except PydanticValidationError as e:
        raise TemplateFormatError("invalid_metadata", f"Invalid front matter: {e}") from e

    return Template(
        id=template_id,
        title=metadata.title,
        source_language=metadata.source_language,
        target_language=metadata.target_language,
        description=metadata.description,
        content=body,
    )


class TemplateStore:
    """In-memory registry of prompt templates keyed by id."""

    def __init__(self, templates: list[Template] | None = None):
        self._templates: dict[str, Template] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: Template) -> Template:
        if template.id in self._templates:
            logger.debug(f"Replacing template: {template.id}")
        self._templates[template.id] = template
        return template

    def register_document(self, template_id: str, text: str) -> Template:
        """Parse and register a front-matter document."""
        return self.register(load_template_document(template_id, text))

    def register_file(self, path: str | Path) -> Template:
        """Register a single template file; its id is the file stem."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise NotFoundError(f"Template file not readable: {path} ({e})") from e
        try:
            return self.register_document(path.stem, text)
        except TemplateFormatError as e:
            raise TemplateFormatError(e.kind, f"Failed to load template '{path.name}': {e}") from e

    def get(self, template_id: str) -> Template | None:
        return self._templates.get(template_id)

    def get_or_raise(self, template_id: str) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Template not found: {template_id}")
        return template

    def list(self) -> list[dict]:
        """Template metadata without content."""
        return [t.model_dump(exclude={"content"}) for t in self._templates.values()]

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates


__all__ = [
    "TemplateFormatError",
    "TemplateMetadata",
    "TemplateStore",
    "load_template_document",
    "parse_front_matter",
]
