"""Pydantic models for chat sessions, messages and citations."""

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field

from shared.models.base import CamelModel

Role = Literal["user", "assistant", "system"]


class Citation(CamelModel):
    """A search result that backs part of an assistant answer.

    Attributes:
        id:           Id of the cited chunk.
        page_number:  Page the chunk was cut from.
        text:         First 200 characters of the chunk.
        score:        Similarity score reported by the vector backend.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    page_number: int
    text: str
    score: float


class ChatMessage(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    citations: list[Citation] | None = None
    timestamp: datetime
    session_id: str


class ChatSession(CamelModel):
    """A conversation bound to exactly one document for its lifetime."""

    id: str
    document_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
