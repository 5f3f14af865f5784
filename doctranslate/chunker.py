"""Text chunking for translation.

Strategy:
1. Pack whole paragraphs (blank-line separated) up to the target size
2. Paragraphs too long on their own are split into sentences and packed
3. Sentences still too long are force-split near a whitespace boundary

Rejoining chunks with the separators used while packing ("\\n\\n" between
paragraphs, " " between sentences, "" at forced cuts) reproduces the
stripped source paragraphs.
"""

import logging
import re

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "

# Blank line: newline, optional whitespace, newline
PARAGRAPH_PATTERN = re.compile(r"\n\s*\n")

# Sentence: anything up to a run of terminal punctuation (Latin and CJK)
SENTENCE_PATTERN = re.compile(r"[^.!?。？！]*[.!?。？！]+\s*")


def split_into_chunks(text: str, target_size: int) -> list[str]:
    """Split text into ordered chunks of at most ``target_size`` characters.

    Args:
        text: Full source text
        target_size: Maximum characters per chunk

    Returns:
        List of chunk texts in document order (empty for blank input)

    Raises:
        ValueError: If target_size is not positive

    Examples:
        >>> split_into_chunks("One.\\n\\nTwo.", 100)
        ['One.\\n\\nTwo.']
    """
    if target_size <= 0:
        raise ValueError(f"target_size must be positive, got {target_size}")

    if not text or not text.strip():
        return []

    paragraphs = [p.strip() for p in PARAGRAPH_PATTERN.split(text) if p.strip()]

    chunks: list[str] = []
    current = ""

    for paragraph in paragraphs:
        if len(current) + len(paragraph) + len(PARAGRAPH_SEPARATOR) <= target_size:
            current = f"{current}{PARAGRAPH_SEPARATOR}{paragraph}" if current else paragraph
            continue

        if current:
            chunks.append(current)
            current = ""

        if len(paragraph) <= target_size:
            current = paragraph
            continue

        # Oversized paragraph: pack sentence by sentence
        for sentence in split_into_sentences(paragraph):
            if len(current) + len(sentence) + len(SENTENCE_SEPARATOR) <= target_size:
                current = f"{current}{SENTENCE_SEPARATOR}{sentence}" if current else sentence
                continue

            if current:
                chunks.append(current)
                current = ""

            if len(sentence) > target_size:
                pieces = force_split(sentence, target_size)
                chunks.extend(pieces[:-1])
                current = pieces[-1] if pieces else ""
            else:
                current = sentence

    if current:
        chunks.append(current)

    logger.debug(f"Split {len(text)} chars into {len(chunks)} chunks (target={target_size})")
    return chunks


def split_into_sentences(text: str) -> list[str]:
    """Split a paragraph on sentence-terminal punctuation.

    Scans sequentially so no text between matches is lost; a trailing
    fragment without terminal punctuation becomes its own sentence.

    Args:
        text: Paragraph text

    Returns:
        Stripped sentences in order
    """
    sentences: list[str] = []
    last_index = 0

    for match in SENTENCE_PATTERN.finditer(text):
        sentence = match.group(0).strip()
        if sentence:
            sentences.append(sentence)
        last_index = match.end()

    remaining = text[last_index:].strip()
    if remaining:
        sentences.append(remaining)

    if not sentences and text.strip():
        return [text.strip()]

    return sentences


def force_split(text: str, max_size: int) -> list[str]:
    """Cut text into pieces of at most ``max_size`` characters.

    Cuts at the last whitespace at or before ``max_size``. If that
    whitespace falls in the first half of the budget (or there is none),
    cuts exactly at ``max_size`` so every step makes progress.

    Args:
        text: Text to cut
        max_size: Maximum characters per piece

    Returns:
        Stripped pieces in order
    """
    pieces: list[str] = []
    remaining = text

    while len(remaining) > max_size:
        split_index = _last_whitespace(remaining, max_size)
        if split_index < max_size * 0.5:
            split_index = max_size

        pieces.append(remaining[:split_index].strip())
        remaining = remaining[split_index:].strip()

    if remaining:
        pieces.append(remaining)

    return pieces


def _last_whitespace(text: str, limit: int) -> int:
    """Index of the last whitespace character at or before ``limit``, else -1."""
    for i in range(min(limit, len(text) - 1), -1, -1):
        if text[i].isspace():
            return i
    return -1


__all__ = ["split_into_chunks", "split_into_sentences", "force_split"]
