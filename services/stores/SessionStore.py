"""In-memory chat session store.

Sessions live for the lifetime of the process. Every mutation of a session
happens under that session's own asyncio.Lock; readers get copies, so a
caller can never observe or alter a session outside the lock.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from shared.errors.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatSession


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Keyed map of ChatSession guarded by one lock per session id."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self._sessions: dict[str, ChatSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        # never evicted: a woken waiter may still hold a reference to it
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    ##########################################
    ################ WRITE ###################
    ##########################################

    async def create(self, document_id: str, session_id: str | None = None) -> ChatSession:
        """Create an empty session bound to document_id.

        Args:
            document_id (str): Document the session is bound to for its lifetime.
            session_id (str | None): Id to use; a uuid4 is generated when omitted.

        Raises:
            ValidationError: If a session with session_id already exists.
        """
        session_id = session_id or str(uuid.uuid4())
        async with self._lock_for(session_id):
            if session_id in self._sessions:
                raise ValidationError(f"Session already exists: {session_id}", operation="create_session")
            now = _now()
            session = ChatSession(id=session_id, document_id=document_id, created_at=now, updated_at=now)
            self._sessions[session_id] = session
        self.logging.info("Created chat session: %s for document: %s", session_id, document_id)
        return session.model_copy(deep=True)

    @asynccontextmanager
    async def transaction(self, session_id: str, document_id: str) -> AsyncIterator[ChatSession]:
        """Exclusive read-modify-write access to a session.

        Yields a working copy of the session (created if absent) while holding
        the session's lock. The copy replaces the stored session only if the
        block exits without an exception; otherwise nothing is stored.

        Raises:
            ValidationError: If the session exists but is bound to another document.
        """
        async with self._lock_for(session_id):
            current = self._sessions.get(session_id)
            if current is None:
                now = _now()
                working = ChatSession(id=session_id, document_id=document_id, created_at=now, updated_at=now)
                self.logging.info("Created chat session: %s for document: %s", session_id, document_id)
            elif current.document_id != document_id:
                raise ValidationError(
                    f"Session {session_id} is bound to document {current.document_id}",
                    operation="send_message",
                    context={"session_id": session_id, "document_id": document_id},
                )
            else:
                working = current.model_copy(deep=True)
            yield working
            self._sessions[session_id] = working

    async def clear(self, session_id: str) -> None:
        """Remove every message of a session.

        Raises:
            NotFoundError: If the session does not exist.
        """
        async with self._lock_for(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError(f"Session not found: {session_id}", operation="clear_history")
            self._sessions[session_id] = session.model_copy(update={"messages": [], "updated_at": _now()})
        self.logging.info("Cleared history for session: %s", session_id)

    async def delete(self, session_id: str) -> bool:
        """Delete a session; deleting an unknown session is a no-op.

        Returns:
            bool: Whether a session was removed.
        """
        async with self._lock_for(session_id):
            removed = self._sessions.pop(session_id, None) is not None
        self.logging.info("Deleted session: %s", session_id)
        return removed

    async def close(self) -> None:
        """Drop every session; called at shutdown."""
        count = len(self._sessions)
        self._sessions.clear()
        self._locks.clear()
        self.logging.info("Session store closed (%d sessions dropped)", count)

    ##########################################
    ################ READ ####################
    ##########################################

    def get(self, session_id: str) -> ChatSession:
        """
        Raises:
            NotFoundError: If the session does not exist.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}", operation="get_session")
        return session.model_copy(deep=True)

    def get_messages(self, session_id: str) -> list[ChatMessage]:
        return list(self.get(session_id).messages)

    def list_by_document(self, document_id: str) -> list[ChatSession]:
        return [s.model_copy(deep=True) for s in self._sessions.values() if s.document_id == document_id]

    def __len__(self) -> int:
        return len(self._sessions)
