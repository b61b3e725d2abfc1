"""Unit tests for the chunking strategies"""

import math

import pytest

from services.chunking.TextChunker import (
    CharacterTextChunker,
    SentenceTextChunker,
    WordTextChunker,
    get_text_chunker,
)
from shared.models.document import ExtractedPage


def _pages(*texts: str) -> list[ExtractedPage]:
    pages, offset = [], 0
    for i, text in enumerate(texts):
        pages.append(ExtractedPage(page_number=i + 1, text=text, start_char=offset, end_char=offset + len(text)))
        offset += len(text)
    return pages


class TestWordTextChunker:
    """Test the sliding word window"""

    def test_two_page_document(self, word_chunker):
        """Pages are chunked independently with a document-wide index"""
        chunks = word_chunker.chunk_pages(_pages("A B C D E F", "G H I"), "doc1")

        assert [c.text for c in chunks] == ["A B C", "C D E", "E F", "G H I"]
        assert [c.page_number for c in chunks] == [1, 1, 1, 2]
        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
        assert [c.id for c in chunks] == ["doc1_chunk_0", "doc1_chunk_1", "doc1_chunk_2", "doc1_chunk_3"]

    def test_offsets_are_exact_source_spans(self, word_chunker):
        """Offsets point at the chunk's words in the document text"""
        pages = _pages("alpha  beta\ngamma delta", "one two")
        full_text = "".join(p.text for p in pages)

        chunks = word_chunker.chunk_pages(pages, "doc")

        for chunk in chunks:
            span = full_text[chunk.start_char:chunk.end_char]
            assert span.split() == chunk.text.split()
            page = pages[chunk.page_number - 1]
            assert page.start_char <= chunk.start_char < chunk.end_char <= page.end_char

    def test_empty_and_blank_pages_produce_no_chunks(self, word_chunker):
        chunks = word_chunker.chunk_pages(_pages("", "   \n\t ", "X"), "doc")

        assert [c.text for c in chunks] == ["X"]
        assert chunks[0].chunk_index == 0
        assert chunks[0].page_number == 3

    @pytest.mark.parametrize("words,size,overlap", [(1, 3, 1), (10, 3, 1), (11, 4, 2), (100, 7, 3), (5, 5, 0), (9, 2, 1)])
    def test_chunk_count_and_overlap(self, helper_config, words, size, overlap):
        """Consecutive chunks share exactly the overlap and the last word appears in the last chunk"""
        # Arrange
        chunker = WordTextChunker(helper_config=helper_config, chunk_size=size, chunk_overlap=overlap)
        text = " ".join(f"w{i}" for i in range(words))

        # Act
        chunks = chunker.chunk_pages(_pages(text), "doc")

        # Assert
        assert len(chunks) == math.ceil(max(words - overlap, 1) / (size - overlap))
        for previous, current in zip(chunks, chunks[1:]):
            prev_words, cur_words = previous.text.split(), current.text.split()
            shared = min(overlap, len(prev_words))
            assert prev_words[len(prev_words) - shared:] == cur_words[:shared]
        assert chunks[-1].text.split()[-1] == f"w{words - 1}"
        assert sum(c.text.split().count(f"w{words - 1}") for c in chunks) == 1

    @pytest.mark.parametrize("overlap", [3, 4, 50])
    def test_overlap_not_smaller_than_size_terminates(self, helper_config, overlap):
        """An overlap of at least the window size still advances one word per chunk"""
        chunker = WordTextChunker(helper_config=helper_config, chunk_size=3, chunk_overlap=overlap)

        chunks = chunker.chunk_pages(_pages("a b c d e"), "doc")

        assert [c.text for c in chunks] == ["a b c", "b c d", "c d e"]

    def test_invalid_configuration(self, helper_config):
        with pytest.raises(ValueError):
            WordTextChunker(helper_config=helper_config, chunk_size=0, chunk_overlap=0)
        with pytest.raises(ValueError):
            WordTextChunker(helper_config=helper_config, chunk_size=3, chunk_overlap=-1)


class TestCharacterTextChunker:
    """Test fixed character windows"""

    def test_windows_overlap_by_five_chars_per_word(self, helper_config):
        # size 2 words -> 10 chars, overlap 1 word -> 5 chars
        chunker = CharacterTextChunker(helper_config=helper_config, chunk_size=2, chunk_overlap=1)
        text = "abcdefghijklmnopqrst"

        chunks = chunker.chunk_pages(_pages(text), "doc")

        assert [c.text for c in chunks] == ["abcdefghij", "fghijklmno", "klmnopqrst"]
        assert [(c.start_char, c.end_char) for c in chunks] == [(0, 10), (5, 15), (10, 20)]

    def test_whitespace_windows_are_skipped(self, helper_config):
        chunker = CharacterTextChunker(helper_config=helper_config, chunk_size=1, chunk_overlap=0)

        chunks = chunker.chunk_pages(_pages("abcde          vwxyz"), "doc")

        assert [c.text for c in chunks] == ["abcde", "vwxyz"]
        assert [c.chunk_index for c in chunks] == [0, 1]

    def test_overlap_not_smaller_than_size_terminates(self, helper_config):
        chunker = CharacterTextChunker(helper_config=helper_config, chunk_size=1, chunk_overlap=2)

        chunks = chunker.chunk_pages(_pages("abcdefg"), "doc")

        assert chunks[0].text == "abcde"
        assert chunks[-1].text.endswith("g")


class TestSentenceTextChunker:
    """Test sentence packing"""

    def test_sentences_are_packed_up_to_target(self, helper_config):
        # target 4 words -> 20 chars
        chunker = SentenceTextChunker(helper_config=helper_config, chunk_size=4, chunk_overlap=0)
        text = "One two. Three four. Five six seven eight nine ten."

        chunks = chunker.chunk_pages(_pages(text), "doc")

        assert [c.text for c in chunks] == ["One two. Three four.", "Five six seven eight nine ten."]
        for chunk in chunks:
            assert text[chunk.start_char:chunk.end_char] == chunk.text

    def test_trailing_text_without_punctuation_is_kept(self, helper_config):
        chunker = SentenceTextChunker(helper_config=helper_config, chunk_size=100, chunk_overlap=0)

        chunks = chunker.chunk_pages(_pages("First sentence! And a tail"), "doc")

        assert [c.text for c in chunks] == ["First sentence! And a tail"]


class TestGetTextChunker:
    """Test strategy selection"""

    @pytest.mark.parametrize("strategy,expected", [("words", WordTextChunker), ("chars", CharacterTextChunker), ("sentences", SentenceTextChunker)])
    def test_selects_configured_strategy(self, helper_config, monkeypatch, strategy, expected):
        monkeypatch.setenv("CHUNK_STRATEGY", strategy)

        chunker = get_text_chunker(helper_config)

        assert isinstance(chunker, expected)
        assert (chunker.chunk_size, chunker.chunk_overlap) == (3, 1)

    def test_defaults_to_words(self, helper_config, monkeypatch):
        monkeypatch.delenv("CHUNK_STRATEGY", raising=False)

        assert isinstance(get_text_chunker(helper_config), WordTextChunker)

    def test_unknown_strategy(self, helper_config, monkeypatch):
        monkeypatch.setenv("CHUNK_STRATEGY", "paragraphs")

        with pytest.raises(ValueError):
            get_text_chunker(helper_config)
