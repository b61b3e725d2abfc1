"""Ingestion service.

Stores uploaded PDFs, extracts their pages, splits the text into chunks,
embeds all chunks in one batched provider call and upserts the resulting
vectors into the vector backend. Also owns document deletion.
"""

import asyncio
import os
import uuid
from datetime import datetime, timezone

from services.chunking.TextChunker import TextChunkerInterface
from services.ingest.PdfExtractor import PdfExtractor
from services.stores.DocumentRegistry import DocumentRegistry
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorRecord
from shared.errors.errors import AppError, NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import DocumentMetadata, DocumentStatus, ExtractedPage

UPSERT_BATCH_SIZE = 100           # max vectors per upsert call
DEFAULT_SESSION_ID = "default-session"
PDF_CONTENT_TYPE = "application/pdf"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IngestService:
    """Upload, indexing and deletion of PDF documents."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_registry: DocumentRegistry,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
        chunker: TextChunkerInterface,
        extractor: PdfExtractor,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._documents = document_registry
        self._rag_client = rag_client
        self._llm_client = llm_client
        self._chunker = chunker
        self._extractor = extractor

        self.upload_dir = helper_config.get_string_val("UPLOAD_DIR", default="./uploads")
        self.max_file_size = int(helper_config.get_number_val("UPLOAD_MAX_FILE_SIZE", default=50 * 1024 * 1024))
        os.makedirs(self.upload_dir, exist_ok=True)
        self.logging.info("Upload directory ready: %s", self.upload_dir)

    ##########################################
    ############### VALIDATION ###############
    ##########################################

    def validate_upload(self, content: bytes | None, original_name: str | None, content_type: str | None) -> None:
        """
        Raises:
            ValidationError: If no file was sent, it is not a PDF or it is too large.
        """
        if content is None or not original_name:
            raise ValidationError("No file provided", operation="upload")
        if content_type != PDF_CONTENT_TYPE:
            raise ValidationError("Only PDF files are allowed", operation="upload", context={"content_type": content_type})
        if len(content) > self.max_file_size:
            raise ValidationError(f"File size exceeds limit of {self.max_file_size} bytes", operation="upload")

    ##########################################
    ################# UPLOAD #################
    ##########################################

    async def do_process_upload(self, content: bytes, original_name: str, session_id: str | None = None) -> DocumentMetadata:
        """Store an uploaded PDF and index it.

        Args:
            content (bytes): Raw file content.
            original_name (str): File name as sent by the client.
            session_id (str | None): Upload session; defaults to "default-session".

        Returns:
            DocumentMetadata: Metadata of the document in status "ready".

        Raises:
            AppError: Extraction, provider or backend failure. The document is
                left in status "error" and the stored file is removed.
        """
        document_id = str(uuid.uuid4())
        original_name = os.path.basename(original_name)
        filename = f"{document_id}_{original_name}"
        file_path = os.path.join(self.upload_dir, filename)
        self.logging.info("Processing PDF: %s (%d bytes) as %s", original_name, len(content), document_id)

        await self._documents.register(
            DocumentMetadata(
                id=document_id,
                filename=filename,
                original_name=original_name,
                path=file_path,
                size=len(content),
                uploaded_at=_now(),
                session_id=session_id or DEFAULT_SESSION_ID,
            )
        )
        try:
            await asyncio.to_thread(self._write_file, file_path, content)
            extracted = await self._extractor.do_extract(file_path)
            metadata = await self.do_index_document(document_id, extracted.pages, num_pages=extracted.num_pages)
        except Exception as e:
            self.logging.error("Error processing PDF %s: %s", document_id, e)
            await self._mark_error(document_id)
            await self._remove_file(file_path)
            raise

        self.logging.info("PDF processed successfully: %s", document_id)
        return metadata

    ##########################################
    ################# INDEX ##################
    ##########################################

    async def do_index_document(self, document_id: str, pages: list[ExtractedPage], num_pages: int | None = None) -> DocumentMetadata:
        """Chunk, embed and upsert the pages of a document.

        A document that is not registered yet is registered first. On failure
        exactly the vectors written by this call are deleted again, the status
        becomes "error" and the error is re-raised.

        Returns:
            DocumentMetadata: Metadata in status "ready" with page count and processing time.
        """
        if not self._documents.contains(document_id):
            await self._documents.register(
                DocumentMetadata(id=document_id, filename=document_id, original_name=document_id, uploaded_at=_now())
            )
        await self._documents.update_status(document_id, DocumentStatus.PROCESSING)

        written_ids: list[str] = []
        try:
            chunks = self._chunker.chunk_pages(pages, document_id)
            embeddings = await self._llm_client.do_embed([c.text for c in chunks])
            records = [VectorRecord.from_chunk(chunk, embedding=vector) for chunk, vector in zip(chunks, embeddings)]

            for start in range(0, len(records), UPSERT_BATCH_SIZE):
                batch = records[start:start + UPSERT_BATCH_SIZE]
                # a failed batch may still be partially written
                written_ids.extend(r.id for r in batch)
                await self._rag_client.do_upsert(batch)
                self.logging.debug("Upserted %d/%d vectors for %s", len(written_ids), len(records), document_id)

            # fails if the document was removed meanwhile; its vectors are rolled back then
            metadata = await self._documents.update_status(
                document_id,
                DocumentStatus.READY,
                page_count=num_pages if num_pages is not None else len(pages),
                processed_at=_now(),
            )
        except Exception as e:
            self.logging.error("Error indexing document %s: %s", document_id, e)
            await self._rollback(document_id, written_ids)
            await self._mark_error(document_id)
            raise

        self.logging.info("Indexed document %s: %d chunks from %d pages", document_id, len(records), metadata.page_count)
        return metadata

    async def _rollback(self, document_id: str, ids: list[str]) -> None:
        if not ids:
            return
        try:
            await self._rag_client.do_delete_ids(ids)
            self.logging.info("Rolled back %d vectors of document %s", len(ids), document_id)
        except AppError as e:
            self.logging.error("Rollback of %d vectors for document %s failed: %s", len(ids), document_id, e)

    async def _mark_error(self, document_id: str) -> None:
        try:
            if self._documents.get(document_id).status == DocumentStatus.ERROR:
                return
            await self._documents.update_status(document_id, DocumentStatus.ERROR)
        except (NotFoundError, ValidationError) as e:
            self.logging.warning("Could not mark document %s as failed: %s", document_id, e)

    ##########################################
    ################# DELETE #################
    ##########################################

    async def do_delete_document(self, document_id: str) -> None:
        """Delete every vector of a document, its stored file and its registry entry.

        Raises:
            NotFoundError: If the document is not registered.
            ValidationError: If the document is still being uploaded or indexed.
            AppError: If the vector backend fails; the document stays registered.
        """
        metadata = self._documents.get(document_id)
        if metadata.status in (DocumentStatus.UPLOADING, DocumentStatus.PROCESSING):
            raise ValidationError(
                f"Document {document_id} is still being processed",
                operation="delete_document",
                context={"status": metadata.status.value},
            )
        self.logging.info("Deleting document: %s", document_id)
        try:
            deleted = await self._rag_client.do_delete_by_document(document_id)
        except AppError as e:
            self.logging.error("Error deleting vectors of document %s: %s", document_id, e)
            raise
        if metadata.path:
            await self._remove_file(metadata.path)
        await self._documents.remove(document_id)
        self.logging.info("Document deleted: %s (%d vectors)", document_id, deleted)

    ##########################################
    ################## READ ##################
    ##########################################

    def get_metadata(self, document_id: str) -> DocumentMetadata:
        return self._documents.get(document_id)

    def get_file_path(self, document_id: str) -> str:
        """
        Raises:
            NotFoundError: If the document or its stored file does not exist.
        """
        metadata = self._documents.get(document_id)
        if not metadata.path or not os.path.isfile(metadata.path):
            raise NotFoundError(f"File not found: {document_id}", operation="get_file")
        return metadata.path

    def list_documents(self) -> list[DocumentMetadata]:
        return self._documents.list_all()

    def list_documents_by_session(self, session_id: str) -> list[DocumentMetadata]:
        return self._documents.list_by_session(session_id)

    ##########################################
    ################# FILES ##################
    ##########################################

    @staticmethod
    def _write_file(file_path: str, content: bytes) -> None:
        with open(file_path, "wb") as f:
            f.write(content)

    async def _remove_file(self, file_path: str) -> None:
        try:
            await asyncio.to_thread(os.remove, file_path)
        except FileNotFoundError:
            self.logging.debug("File %s already removed", file_path)
        except OSError as e:
            self.logging.error("Error deleting file %s: %s", file_path, e)
