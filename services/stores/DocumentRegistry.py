import asyncio
from typing import Any

from shared.errors.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import DocumentMetadata, DocumentStatus


class DocumentRegistry:
    """In-memory registry of uploaded documents, one lock per document id.

    Status only moves forward: uploading -> processing -> ready | error.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self._documents: dict[str, DocumentMetadata] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, document_id: str) -> asyncio.Lock:
        # never evicted: a woken waiter may still hold a reference to it
        lock = self._locks.get(document_id)
        if lock is None:
            lock = self._locks[document_id] = asyncio.Lock()
        return lock

    ##########################################
    ################ WRITE ###################
    ##########################################

    async def register(self, metadata: DocumentMetadata) -> DocumentMetadata:
        """
        Raises:
            ValidationError: If a document with the same id is already registered.
        """
        async with self._lock_for(metadata.id):
            if metadata.id in self._documents:
                raise ValidationError(f"Document already registered: {metadata.id}", operation="register_document")
            self._documents[metadata.id] = metadata
        self.logging.debug("Registered document %s (%s)", metadata.id, metadata.original_name)
        return metadata

    async def update_status(self, document_id: str, status: DocumentStatus, **fields: Any) -> DocumentMetadata:
        """Move a document to a new status, optionally updating other fields.

        Args:
            document_id (str): Registered document id.
            status (DocumentStatus): Target status.
            **fields: Extra DocumentMetadata fields to set (e.g. page_count, processed_at).

        Raises:
            NotFoundError: If the document is not registered.
            ValidationError: If the state machine does not allow the move.
        """
        async with self._lock_for(document_id):
            current = self._documents.get(document_id)
            if current is None:
                raise NotFoundError(f"Document not found: {document_id}", operation="update_status")
            if not current.status.can_move_to(status):
                raise ValidationError(
                    f"Cannot move document {document_id} from {current.status.value} to {status.value}",
                    operation="update_status",
                )
            updated = current.model_copy(update={**fields, "status": status})
            self._documents[document_id] = updated
        self.logging.info("Document %s: %s -> %s", document_id, current.status.value, status.value)
        return updated

    async def remove(self, document_id: str) -> DocumentMetadata:
        """
        Raises:
            NotFoundError: If the document is not registered.
        """
        async with self._lock_for(document_id):
            metadata = self._documents.pop(document_id, None)
        if metadata is None:
            raise NotFoundError(f"Document not found: {document_id}", operation="remove_document")
        return metadata

    async def close(self) -> None:
        self._documents.clear()
        self._locks.clear()

    ##########################################
    ################ READ ####################
    ##########################################

    def get(self, document_id: str) -> DocumentMetadata:
        """
        Raises:
            NotFoundError: If the document is not registered.
        """
        metadata = self._documents.get(document_id)
        if metadata is None:
            raise NotFoundError(f"Document not found: {document_id}", operation="get_document")
        return metadata.model_copy()

    def contains(self, document_id: str) -> bool:
        return document_id in self._documents

    def list_by_session(self, session_id: str) -> list[DocumentMetadata]:
        return [m.model_copy() for m in self._documents.values() if m.session_id == session_id]

    def list_all(self) -> list[DocumentMetadata]:
        return [m.model_copy() for m in self._documents.values()]
