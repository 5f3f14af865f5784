"""Storage backends."""

from doctranslate.storage.database import TranslationDB

__all__ = ["TranslationDB"]
