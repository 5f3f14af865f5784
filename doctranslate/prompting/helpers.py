"""Template helper functions.

Generic helpers (comparison, logic, strings, collections) are plain
functions; translation helpers are bound to a TranslationContext through
:class:`TranslationHelpers`. Both are exposed to templates as Jinja2 globals
by :func:`helper_globals`.

``and``, ``or`` and ``not`` are Jinja2 keywords, so the logic helpers are
registered as ``and_``, ``or_`` and ``not_``. ``and_`` and ``or_`` are
variadic and ``not_`` takes one value; all return booleans. Jinja's own
operators also work inside ``{% if %}`` blocks.

Usage in a template::

    {% if hasPrevious() %}
    Previous translation:
    {{ chunk(-1, 'translated') }}
    {% endif %}
    {{ json(session, 2) }}
"""

import json as _json
import math
from collections.abc import Callable, Mapping
from typing import Any

from jinja2 import Undefined
from pydantic import BaseModel

from doctranslate.constants import ChunkStatus
from doctranslate.prompting.context import ChunkInfo, TranslationContext

# =============================================================================
# Coercion
# =============================================================================


def to_number(value: Any) -> float | None:
    """Coerce a value to a number, or None if it is not numeric.

    None, empty strings and False coerce to 0; undefined values, NaN and
    non-numeric strings fail.
    """
    if isinstance(value, Undefined):
        return None
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def to_int(value: Any, default: int = 0) -> int:
    """Coerce a value to an int, falling back to ``default``."""
    number = to_number(value)
    if number is None or math.isinf(number):
        return default
    return int(number)


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, Undefined):
        return ""
    return str(value)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


# =============================================================================
# Generic helpers
# =============================================================================


def uppercase(value: Any) -> str:
    return _to_text(value).upper()


def lowercase(value: Any) -> str:
    return _to_text(value).lower()


def eq(a: Any, b: Any) -> bool:
    return a == b


def ne(a: Any, b: Any) -> bool:
    return a != b


def _compare(a: Any, b: Any, op: Callable[[float, float], bool]) -> bool:
    left, right = to_number(a), to_number(b)
    if left is None or right is None:
        return False
    return op(left, right)


def gt(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x > y)


def gte(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x >= y)


def lt(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x < y)


def lte(a: Any, b: Any) -> bool:
    return _compare(a, b, lambda x, y: x <= y)


def and_(*values: Any) -> bool:
    return all(bool(v) for v in values)


def or_(*values: Any) -> bool:
    return any(bool(v) for v in values)


def not_(value: Any) -> bool:
    return not value


def json(value: Any, indent: Any = 0) -> str:
    """Serialize to JSON; compact when ``indent`` is 0, ``''`` on failure."""
    if isinstance(value, Undefined):
        return ""
    spaces = max(to_int(indent), 0)
    try:
        if spaces:
            return _json.dumps(_jsonable(value), ensure_ascii=False, indent=spaces)
        return _json.dumps(_jsonable(value), ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""


def join(value: Any, separator: Any = ", ") -> str:
    if not isinstance(value, (list, tuple)):
        return ""
    sep = separator if isinstance(separator, str) else ", "
    return sep.join(_to_text(item) for item in value)


def length(value: Any) -> int:
    if isinstance(value, (str, list, tuple)):
        return len(value)
    if isinstance(value, Mapping):
        return len(value.keys())
    if isinstance(value, BaseModel):
        return len(type(value).model_fields)
    return 0


def slice_(value: Any, start: Any, end: Any = None) -> str | list:
    begin = to_int(start)
    stop = None if end is None or isinstance(end, Undefined) else to_int(end)
    if isinstance(value, str):
        return value[begin:stop]
    if isinstance(value, (list, tuple)):
        return list(value[begin:stop])
    return ""


GENERIC_HELPERS: dict[str, Callable[..., Any]] = {
    "uppercase": uppercase,
    "lowercase": lowercase,
    "eq": eq,
    "ne": ne,
    "gt": gt,
    "gte": gte,
    "lt": lt,
    "lte": lte,
    "and_": and_,
    "or_": or_,
    "not_": not_,
    "json": json,
    "join": join,
    "length": length,
    "slice": slice_,
}


# =============================================================================
# Translation helpers
# =============================================================================

CHUNK_FIELDS = ("source", "translated", "status")


class TranslationHelpers:
    """Helpers resolving chunks relative to the one being rendered."""

    def __init__(self, context: TranslationContext):
        self._context = context

    def _sibling(self, offset: Any) -> ChunkInfo | None:
        return self._context.find_chunk(self._context.current_order + to_int(offset))

    def chunk(self, offset: Any = 0, field: Any = "source") -> str:
        """Field of the sibling at ``current + offset``; ``''`` if absent."""
        sibling = self._sibling(offset)
        if sibling is None:
            return ""
        if field == "translated":
            return sibling.translated_text or ""
        if field == "status":
            return sibling.status.value
        return sibling.source_text

    def has_chunk(self, offset: Any = 0) -> bool:
        return self._sibling(offset) is not None

    def has_previous(self) -> bool:
        return self._context.previous is not None

    def has_translated(self, offset: Any = 0) -> bool:
        sibling = self._sibling(offset)
        return (
            sibling is not None
            and sibling.status == ChunkStatus.COMPLETED
            and sibling.translated_text is not None
        )

    def chunk_count(self) -> int:
        return len(self._context.chunks)

    def current_order(self) -> int:
        return self._context.current_order

    def is_first_chunk(self) -> bool:
        return self._context.current_order == 0

    def is_last_chunk(self) -> bool:
        if not self._context.chunks:
            return False
        return self._context.current_order == max(c.order for c in self._context.chunks)

    def as_globals(self) -> dict[str, Callable[..., Any]]:
        """Template-facing names of the bound helpers."""
        return {
            "chunk": self.chunk,
            "hasChunk": self.has_chunk,
            "hasPrevious": self.has_previous,
            "hasTranslated": self.has_translated,
            "chunkCount": self.chunk_count,
            "currentOrder": self.current_order,
            "isFirstChunk": self.is_first_chunk,
            "isLastChunk": self.is_last_chunk,
        }


def helper_globals(context: TranslationContext | None = None) -> dict[str, Callable[..., Any]]:
    """All helpers available to a template, bound to ``context`` if given."""
    helpers = dict(GENERIC_HELPERS)
    if context is not None:
        helpers.update(TranslationHelpers(context).as_globals())
    return helpers


__all__ = [
    "GENERIC_HELPERS",
    "TranslationHelpers",
    "helper_globals",
    "to_int",
    "to_number",
]
