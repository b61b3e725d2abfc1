from pydantic import ConfigDict

from shared.models.base import CamelModel


class Chunk(CamelModel):
    """A bounded span of one page's text; the unit of embedding and retrieval.

    Attributes:
        id:           "{document_id}_chunk_{chunk_index}".
        document_id:  Owning document.
        page_number:  1-based page the chunk was cut from.
        chunk_index:  Zero-based position within the document, across pages.
        text:         Chunk text.
        start_char:   Start offset of the chunk within the document text.
        end_char:     End offset (exclusive) of the chunk within the document text.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    page_number: int
    chunk_index: int
    text: str
    start_char: int
    end_char: int


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}_chunk_{chunk_index}"


def chunk_id_prefix(document_id: str) -> str:
    """Prefix shared by every chunk id of a document."""
    return f"{document_id}_chunk_"
