import uuid
from datetime import datetime, timezone

from services.chat.citations import build_system_prompt, extract_citations
from services.stores.DocumentRegistry import DocumentRegistry
from services.stores.SessionStore import SessionStore
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors.errors import AppError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatSession

HISTORY_WINDOW = 6  # includes the current question, which is also sent as the final user turn


class ChatService:
    """Answers questions about one document: search -> prompt -> complete -> cite."""

    def __init__(
        self,
        helper_config: HelperConfig,
        session_store: SessionStore,
        document_registry: DocumentRegistry,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._sessions = session_store
        self._documents = document_registry
        self._rag_client = rag_client
        self._llm_client = llm_client
        self.top_k = int(helper_config.get_number_val("TOP_K_RESULTS", default=5))

    ##########################################
    ################ SESSIONS ################
    ##########################################

    async def create_session(self, document_id: str) -> ChatSession:
        return await self._sessions.create(document_id)

    def get_history(self, session_id: str) -> list[ChatMessage]:
        """
        Raises:
            NotFoundError: If the session does not exist.
        """
        return self._sessions.get_messages(session_id)

    async def clear_history(self, session_id: str) -> None:
        await self._sessions.clear(session_id)

    async def delete_session(self, session_id: str) -> None:
        await self._sessions.delete(session_id)

    def list_sessions_by_document(self, document_id: str) -> list[ChatSession]:
        return self._sessions.list_by_document(document_id)

    ##########################################
    ################## CHAT ##################
    ##########################################

    async def send_message(self, session_id: str, document_id: str, message: str) -> ChatMessage:
        """Answer a question about a document and record the exchange.

        The user message and the answer are appended together once the answer
        exists; if any step fails the session is left exactly as it was.

        Args:
            session_id (str): Session to append to, created if unknown.
            document_id (str): Document to answer from.
            message (str): The user's question.

        Returns:
            ChatMessage: The assistant message with its citations.

        Raises:
            NotFoundError: If the document is not registered.
            ValidationError: If the session is bound to another document.
            AppError: Any provider or backend failure, unchanged.
        """
        self.logging.info("Processing message for session %s: %r", session_id, message[:50])
        try:
            self._documents.get(document_id)

            async with self._sessions.transaction(session_id, document_id) as session:
                stored = [{"role": m.role, "content": m.content} for m in session.messages[-(HISTORY_WINDOW - 1):]]
                history = [*stored, {"role": "user", "content": message}]
                user_message = ChatMessage(
                    id=str(uuid.uuid4()),
                    role="user",
                    content=message,
                    timestamp=datetime.now(timezone.utc),
                    session_id=session_id,
                )

                results = await self._rag_client.do_search(message, top_k=self.top_k, filter={"documentId": document_id})
                self.logging.debug("Retrieved %d chunks for session %s", len(results), session_id)

                answer = await self._llm_client.do_complete(
                    system_prompt=build_system_prompt(results),
                    history=history,
                    user_message=message,
                )

                assistant_message = ChatMessage(
                    id=str(uuid.uuid4()),
                    role="assistant",
                    content=answer,
                    citations=extract_citations(answer, results),
                    timestamp=datetime.now(timezone.utc),
                    session_id=session_id,
                )
                session.messages.extend([user_message, assistant_message])
                session.updated_at = assistant_message.timestamp
        except AppError as e:
            self.logging.error("Error processing message for session %s: %s", session_id, e)
            raise

        self.logging.info(
            "Generated response for session %s with %d citation(s)",
            session_id, len(assistant_message.citations or []),
        )
        return assistant_message
