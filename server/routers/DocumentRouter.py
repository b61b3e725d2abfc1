from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse

from server.dependencies.auth import verify_api_key
from server.models.responses import ApiResponse
from shared.models.document import DocumentMetadata

router = APIRouter(prefix="/api/pdf", tags=["pdf"], dependencies=[Depends(verify_api_key)])


@router.post("/upload")
async def upload_pdf(
    request: Request,
    file: UploadFile | None = File(default=None),
    session_id: str | None = Query(default=None, alias="sessionId"),
) -> ApiResponse[DocumentMetadata]:
    """Store an uploaded PDF and index it for chat.

    Args:
        request (Request): FastAPI request (provides app.state.ingest_service).
        file (UploadFile | None): Multipart field "file".
        session_id (str | None): Upload session, "default-session" if omitted.

    Returns:
        ApiResponse[DocumentMetadata]: Metadata of the indexed document.
    """
    ingest_service = request.app.state.ingest_service
    content = await file.read() if file is not None else None
    ingest_service.validate_upload(
        content,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
    )
    request.app.state.logging.info("Uploading PDF: %s", file.filename)
    metadata = await ingest_service.do_process_upload(content, file.filename, session_id)
    return ApiResponse(success=True, data=metadata)


@router.get("/session/{session_id}")
async def list_session_documents(request: Request, session_id: str) -> ApiResponse[list[DocumentMetadata]]:
    return ApiResponse(success=True, data=request.app.state.ingest_service.list_documents_by_session(session_id))


@router.get("/{document_id}")
async def get_pdf_metadata(request: Request, document_id: str) -> ApiResponse[DocumentMetadata]:
    return ApiResponse(success=True, data=request.app.state.ingest_service.get_metadata(document_id))


@router.get("/{document_id}/content")
async def get_pdf_content(request: Request, document_id: str) -> FileResponse:
    """Stream the stored PDF for inline display."""
    ingest_service = request.app.state.ingest_service
    metadata = ingest_service.get_metadata(document_id)
    return FileResponse(
        ingest_service.get_file_path(document_id),
        media_type="application/pdf",
        filename=metadata.original_name,
        content_disposition_type="inline",
    )


@router.delete("/{document_id}", response_model_exclude_none=True)
async def delete_pdf(request: Request, document_id: str) -> ApiResponse[None]:
    """Delete a document, its vectors and its stored file."""
    await request.app.state.ingest_service.do_delete_document(document_id)
    return ApiResponse(success=True, message="Document deleted successfully")
