"""Tests for doctranslate.chunker module."""

import re

import pytest

from doctranslate.chunker import force_split, split_into_chunks, split_into_sentences


def _normalized_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


class TestSplitIntoChunks:
    """Tests for split_into_chunks()."""

    def test_empty_input(self):
        assert split_into_chunks("", 100) == []
        assert split_into_chunks("   \n\n  \t ", 100) == []

    def test_invalid_target_size(self):
        with pytest.raises(ValueError):
            split_into_chunks("text", 0)
        with pytest.raises(ValueError):
            split_into_chunks("text", -5)

    def test_small_text_single_chunk(self):
        assert split_into_chunks("One.\n\nTwo.", 100) == ["One.\n\nTwo."]

    def test_paragraphs_are_stripped_and_blank_ones_dropped(self):
        text = "  First paragraph.  \n\n\n   \n\nSecond paragraph.\n"
        assert split_into_chunks(text, 100) == ["First paragraph.\n\nSecond paragraph."]

    def test_blank_line_may_contain_whitespace(self):
        assert split_into_chunks("A.\n   \nB.", 3) == ["A.", "B."]

    def test_packing_counts_separator(self):
        # 5 + 5 + 2 = 12 fits exactly
        assert split_into_chunks("aaaaa\n\nbbbbb", 12) == ["aaaaa\n\nbbbbb"]
        assert split_into_chunks("aaaaa\n\nbbbbb", 11) == ["aaaaa", "bbbbb"]

    def test_order_preserved(self):
        paragraphs = [f"Paragraph number {i}." for i in range(20)]
        chunks = split_into_chunks("\n\n".join(paragraphs), 60)
        assert "\n\n".join(chunks) == "\n\n".join(paragraphs)

    def test_oversized_paragraph_split_into_sentences(self):
        paragraph = "First sentence here. Second sentence here! Third one?"
        chunks = split_into_chunks(paragraph, 25)
        assert chunks == ["First sentence here.", "Second sentence here!", "Third one?"]

    def test_sentences_packed_with_space(self):
        paragraph = "One. Two. Three. Four."
        chunks = split_into_chunks(paragraph, 10)
        assert chunks == ["One. Two.", "Three.", "Four."]
        assert " ".join(chunks) == paragraph

    def test_cjk_sentence_punctuation(self):
        paragraph = "これは文です。これも文です！本当ですか？"
        chunks = split_into_chunks(paragraph, 8)
        assert chunks == ["これは文です。", "これも文です！", "本当ですか？"]

    def test_oversized_paragraph_force_split(self):
        text = "Para one.\n\nPara two " + "x" * 5000
        chunks = split_into_chunks(text, 2000)

        assert len(chunks) >= 2
        assert chunks[0] == "Para one."
        assert all(len(c) <= 2000 for c in chunks)
        assert "".join(chunks[1:]).replace(" ", "") == ("Para two " + "x" * 5000).replace(" ", "")

    def test_no_chunk_exceeds_target_for_splittable_text(self):
        words = " ".join(f"word{i}" for i in range(2000))
        text = f"Intro.\n\n{words}\n\nOutro sentence. Another one."
        for size in (50, 200, 1000):
            assert all(len(c) <= size for c in split_into_chunks(text, size))

    def test_round_trip_with_packing_separators(self):
        text = "Alpha beta.\n\nGamma delta epsilon.\n\nZeta."
        chunks = split_into_chunks(text, 25)
        assert "\n\n".join(chunks) == "\n\n".join(_normalized_paragraphs(text))


class TestSplitIntoSentences:
    """Tests for split_into_sentences()."""

    def test_keeps_trailing_fragment(self):
        assert split_into_sentences("Done. And then") == ["Done.", "And then"]

    def test_runs_of_punctuation(self):
        assert split_into_sentences("Really?! Yes...") == ["Really?!", "Yes..."]

    def test_no_punctuation(self):
        assert split_into_sentences("no punctuation at all") == ["no punctuation at all"]

    def test_empty(self):
        assert split_into_sentences("   ") == []


class TestForceSplit:
    """Tests for force_split()."""

    def test_cuts_at_whitespace(self):
        assert force_split("aaaa bbbb cccc", 10) == ["aaaa bbbb", "cccc"]

    def test_cuts_exactly_without_whitespace(self):
        assert force_split("x" * 25, 10) == ["x" * 10, "x" * 10, "x" * 5]

    def test_whitespace_in_first_half_ignored(self):
        # Space at index 1 is before half the budget
        assert force_split("a " + "b" * 20, 10) == ["a bbbbbbbb", "b" * 10, "bb"]

    def test_short_text_untouched(self):
        assert force_split("short", 10) == ["short"]
