from typing import Generic, TypeVar

from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import IndexStats
from shared.models.base import CamelModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope of every JSON response.

    Success carries data or a message; failure carries error only.
    """

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None


class HealthStatus(CamelModel):
    status: str
    version: str
    llm_engine: str
    vector_index: IndexStats
