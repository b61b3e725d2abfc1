from pydantic import Field

from shared.models.base import CamelModel

MAX_MESSAGE_LENGTH = 5000


class CreateSessionRequest(CamelModel):
    document_id: str = Field(min_length=1)


class SendMessageRequest(CamelModel):
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    session_id: str = Field(min_length=1)
    document_id: str = Field(min_length=1)
