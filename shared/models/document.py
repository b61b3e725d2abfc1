"""Pydantic models for uploaded documents.

Models:
  ExtractedPage      : one page of text as produced by the PDF extractor.
  ExtractedDocument  : all pages of a file plus its page count.
  DocumentStatus     : forward-only processing state.
  DocumentMetadata   : registry entry for an uploaded document.
"""

from datetime import datetime
from enum import Enum

from shared.models.base import CamelModel


class ExtractedPage(CamelModel):
    """Text of a single page and its character range in the whole document."""

    page_number: int
    text: str
    start_char: int = 0
    end_char: int = 0


class ExtractedDocument(CamelModel):
    pages: list[ExtractedPage]
    num_pages: int


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    def can_move_to(self, target: "DocumentStatus") -> bool:
        """Whether the state machine allows moving from this status to target.

        uploading -> processing -> (ready | error); uploading may also fail
        straight to error. Terminal states never move again.
        """
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.UPLOADING: {DocumentStatus.PROCESSING, DocumentStatus.ERROR},
    DocumentStatus.PROCESSING: {DocumentStatus.READY, DocumentStatus.ERROR},
    DocumentStatus.READY: set(),
    DocumentStatus.ERROR: set(),
}


class DocumentMetadata(CamelModel):
    """Registry entry for an uploaded document.

    Attributes:
        id:             Document id (uuid4), also the vector metadata documentId.
        filename:       Stored file name ({id}_{original_name}).
        original_name:  File name as uploaded by the user.
        path:           Location of the stored file.
        size:           File size in bytes.
        uploaded_at:    When the upload was registered.
        processed_at:   When indexing finished successfully.
        page_count:     Number of pages reported by the extractor.
        status:         Current processing state.
        session_id:     Upload session the document belongs to.
    """

    id: str
    filename: str
    original_name: str
    path: str = ""
    size: int = 0
    uploaded_at: datetime
    processed_at: datetime | None = None
    page_count: int = 0
    status: DocumentStatus = DocumentStatus.UPLOADING
    session_id: str = "default-session"
