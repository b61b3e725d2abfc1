from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import CreateSessionRequest, SendMessageRequest
from server.models.responses import ApiResponse
from shared.models.chat import ChatMessage, ChatSession

router = APIRouter(prefix="/api/chat", tags=["chat"], dependencies=[Depends(verify_api_key)])


@router.post("/session")
async def create_session(request: Request, body: CreateSessionRequest) -> ApiResponse[ChatSession]:
    """Create an empty chat session bound to a document."""
    session = await request.app.state.chat_service.create_session(body.document_id)
    return ApiResponse(success=True, data=session)


@router.post("")
async def send_message(request: Request, body: SendMessageRequest) -> ApiResponse[ChatMessage]:
    """Ask a question about a document and return the cited answer.

    Args:
        request (Request): FastAPI request (provides app.state.chat_service).
        body (SendMessageRequest): JSON body with message, sessionId and documentId.

    Returns:
        ApiResponse[ChatMessage]: The assistant message with its citations.
    """
    chat_service = request.app.state.chat_service
    message = await chat_service.send_message(body.session_id, body.document_id, body.message)
    return ApiResponse(success=True, data=message)


@router.get("/{session_id}/history")
async def get_history(request: Request, session_id: str) -> ApiResponse[list[ChatMessage]]:
    return ApiResponse(success=True, data=request.app.state.chat_service.get_history(session_id))


@router.delete("/{session_id}/history", response_model_exclude_none=True)
async def clear_history(request: Request, session_id: str) -> ApiResponse[None]:
    await request.app.state.chat_service.clear_history(session_id)
    return ApiResponse(success=True, message="Chat history cleared")


@router.delete("/{session_id}", response_model_exclude_none=True)
async def delete_session(request: Request, session_id: str) -> ApiResponse[None]:
    await request.app.state.chat_service.delete_session(session_id)
    return ApiResponse(success=True, message="Session deleted")
