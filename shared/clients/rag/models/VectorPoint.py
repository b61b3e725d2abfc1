"""Records written to and read from a vector backend."""

from pydantic import BaseModel

from shared.models.base import CamelModel
from shared.models.chunk import Chunk


class VectorMetadata(CamelModel):
    """Metadata stored alongside each vector.

    documentId is the only key search filters and deletes rely on; it must
    match exactly one registered document.
    """

    document_id: str
    page_number: int
    chunk_index: int
    start_char: int
    end_char: int

    def to_payload(self) -> dict:
        """Flat camelCase dict as stored in the backend."""
        return self.model_dump(by_alias=True)


class VectorRecord(BaseModel):
    """A chunk ready to be upserted.

    Attributes:
        id:         Chunk id; re-upserting the same id replaces the record.
        text:       Full chunk text (returned by searches).
        metadata:   Filterable metadata.
        embedding:  Vector of the index dimension, or None to let the backend
                    client embed the text before writing.
    """

    id: str
    text: str
    metadata: VectorMetadata
    embedding: list[float] | None = None

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: list[float] | None = None) -> "VectorRecord":
        return cls(
            id=chunk.id,
            text=chunk.text,
            embedding=embedding,
            metadata=VectorMetadata(
                document_id=chunk.document_id,
                page_number=chunk.page_number,
                chunk_index=chunk.chunk_index,
                start_char=chunk.start_char,
                end_char=chunk.end_char,
            ),
        )

    @property
    def text_preview(self) -> str:
        return self.text[:1000]


class SearchResult(CamelModel):
    """A single hit of a similarity search. Higher score means more similar."""

    id: str
    text: str
    score: float
    metadata: VectorMetadata

    @property
    def page_number(self) -> int:
        return self.metadata.page_number


class IndexStats(CamelModel):
    engine: str
    count: int
    available: bool = True
