"""Text chunking strategies.

Each strategy turns the extracted pages of a document into overlapping
chunks. Pages are chunked independently of each other, but the chunk index
(and therefore the chunk id) runs across the whole document.

Strategies:
  WordTextChunker      : sliding window of CHUNK_SIZE words (default).
  CharacterTextChunker : fixed windows of CHUNK_SIZE * 5 characters.
  SentenceTextChunker  : sentences packed up to CHUNK_SIZE * 5 characters.
"""

import re
from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import Chunk, make_chunk_id
from shared.models.document import ExtractedPage

CHARS_PER_WORD = 5  # rough characters per word for the character based strategies

_WORD_PATTERN = re.compile(r"\S+")
_SENTENCE_PATTERN = re.compile(r"[^.!?]+(?:[.!?]+|$)")


class TextChunkerInterface(ABC):
    """Common contract of all chunking strategies."""

    def __init__(self, helper_config: HelperConfig, chunk_size: int | None = None, chunk_overlap: int | None = None):
        self.logging = helper_config.get_logger()
        self.chunk_size = int(chunk_size if chunk_size is not None else helper_config.get_number_val("CHUNK_SIZE", default=500))
        self.chunk_overlap = int(chunk_overlap if chunk_overlap is not None else helper_config.get_number_val("CHUNK_OVERLAP", default=50))
        if self.chunk_size < 1:
            raise ValueError(f"CHUNK_SIZE must be at least 1. Got: {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ValueError(f"CHUNK_OVERLAP must not be negative. Got: {self.chunk_overlap}")

    def chunk_pages(self, pages: list[ExtractedPage], document_id: str) -> list[Chunk]:
        """Split extracted pages into overlapping chunks.

        Args:
            pages (list[ExtractedPage]): Pages in reading order.
            document_id (str): Id of the owning document, used for chunk ids.

        Returns:
            list[Chunk]: Chunks of all pages with a document-wide, gapless chunk index.
        """
        self.logging.info(
            "Chunking document %s with %s (size=%d, overlap=%d)",
            document_id, type(self).__name__, self.chunk_size, self.chunk_overlap,
        )
        chunks: list[Chunk] = []
        for page in pages:
            for text, start, end in self._split_page(page.text):
                chunk_index = len(chunks)
                chunks.append(
                    Chunk(
                        id=make_chunk_id(document_id, chunk_index),
                        document_id=document_id,
                        page_number=page.page_number,
                        chunk_index=chunk_index,
                        text=text,
                        start_char=page.start_char + start,
                        end_char=page.start_char + end,
                    )
                )
        self.logging.info("Created %d chunks from %d pages", len(chunks), len(pages))
        return chunks

    @abstractmethod
    def _split_page(self, text: str) -> list[tuple[str, int, int]]:
        """Split one page's text.

        Returns:
            list[tuple[str, int, int]]: (chunk text, start offset, end offset) with
                offsets relative to the page text.
        """
        pass


class WordTextChunker(TextChunkerInterface):
    """Sliding window of chunk_size words; consecutive windows share chunk_overlap words.

    Chunk text is the window's words joined by single spaces, offsets are the
    exact source span from the first word's start to the last word's end.
    """

    def _split_page(self, text: str) -> list[tuple[str, int, int]]:
        words = [(m.group(), m.start(), m.end()) for m in _WORD_PATTERN.finditer(text)]
        pieces: list[tuple[str, int, int]] = []
        word_index = 0
        while word_index < len(words):
            window = words[word_index:word_index + self.chunk_size]
            pieces.append((" ".join(w[0] for w in window), window[0][1], window[-1][2]))
            word_index += len(window)
            if word_index < len(words) and self.chunk_overlap > 0:
                # keep at least one new word per step
                word_index -= min(self.chunk_overlap, len(window) - 1)
        return pieces


class CharacterTextChunker(TextChunkerInterface):
    """Fixed windows of chunk_size * 5 characters overlapping chunk_overlap * 5 characters."""

    def _split_page(self, text: str) -> list[tuple[str, int, int]]:
        size = self.chunk_size * CHARS_PER_WORD
        overlap = self.chunk_overlap * CHARS_PER_WORD
        step = max(size - overlap, 1)
        pieces: list[tuple[str, int, int]] = []
        start = 0
        while start < len(text):
            end = min(start + size, len(text))
            window = text[start:end]
            stripped = window.strip()
            if stripped:
                lead = len(window) - len(window.lstrip())
                pieces.append((stripped, start + lead, start + lead + len(stripped)))
            if end >= len(text):
                break
            start += step
        return pieces


class SentenceTextChunker(TextChunkerInterface):
    """Whole sentences packed into chunks of at most chunk_size * 5 characters.

    A single sentence longer than the target becomes a chunk of its own.
    Overlap is not applied.
    """

    def _split_page(self, text: str) -> list[tuple[str, int, int]]:
        target = self.chunk_size * CHARS_PER_WORD
        pieces: list[tuple[str, int, int]] = []
        chunk_start: int | None = None
        chunk_end = 0
        for match in _SENTENCE_PATTERN.finditer(text):
            if not match.group().strip():
                continue
            if chunk_start is not None and match.end() - chunk_start > target:
                pieces.append(self._piece(text, chunk_start, chunk_end))
                chunk_start = None
            if chunk_start is None:
                chunk_start = match.start()
            chunk_end = match.end()
        if chunk_start is not None:
            pieces.append(self._piece(text, chunk_start, chunk_end))
        return pieces

    @staticmethod
    def _piece(text: str, start: int, end: int) -> tuple[str, int, int]:
        raw = text[start:end]
        lead = len(raw) - len(raw.lstrip())
        stripped = raw.strip()
        return stripped, start + lead, start + lead + len(stripped)


_STRATEGIES: dict[str, type[TextChunkerInterface]] = {
    "words": WordTextChunker,
    "chars": CharacterTextChunker,
    "sentences": SentenceTextChunker,
}


def get_text_chunker(helper_config: HelperConfig) -> TextChunkerInterface:
    """
    Instantiates the chunking strategy selected by CHUNK_STRATEGY.

    Raises:
        ValueError: If the strategy is unknown.
    """
    strategy = helper_config.get_string_val("CHUNK_STRATEGY", default="words").lower()
    chunker_class = _STRATEGIES.get(strategy)
    if chunker_class is None:
        raise ValueError(f"Unsupported CHUNK_STRATEGY '{strategy}'. Choose one of: {', '.join(_STRATEGIES)}")
    return chunker_class(helper_config=helper_config)
