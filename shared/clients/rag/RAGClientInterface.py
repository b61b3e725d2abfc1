from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.models.VectorPoint import IndexStats, SearchResult, VectorMetadata, VectorRecord
from shared.errors.errors import BackendError, BackendUnavailableError, DimensionMismatchError
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Backend-agnostic vector index.

    Every backend stores chunk vectors together with VectorMetadata and must
    honour the same contract:

    - do_upsert() is idempotent per record id.
    - do_search() returns at most top_k results ordered by descending score,
      restricted to the filter (metadata equality) when one is given.
    - do_delete_by_document() leaves no vector of the document behind, whether
      or not the backend can delete by metadata.
    """

    unreachable_error = BackendUnavailableError
    request_error = BackendError

    def __init__(self, helper_config: HelperConfig, embed_client: LLMClientInterface):
        super().__init__(helper_config=helper_config)
        self._embed_client = embed_client
        self.dimension = embed_client.embed_dimension
        self.default_top_k = int(helper_config.get_number_val("TOP_K_RESULTS", default=5))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    def is_available(self) -> bool:
        """Whether the backend finished initialization and can serve requests."""
        return True

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def validate_dimension(self, vector: list[float], operation: str, record_id: str | None = None) -> None:
        """
        Raises:
            DimensionMismatchError: If the vector length differs from the index dimension.
        """
        if len(vector) != self.dimension:
            raise DimensionMismatchError(
                f"Embedding has {len(vector)} dimensions, index expects {self.dimension}.",
                operation=operation,
                context={"id": record_id} if record_id else None,
            )

    async def ensure_embeddings(self, records: list[VectorRecord]) -> list[VectorRecord]:
        """Embed, in one batched call, every record that carries no embedding.

        Returns:
            list[VectorRecord]: Records in input order, all with validated embeddings.
        """
        missing = [i for i, r in enumerate(records) if r.embedding is None]
        if missing:
            vectors = await self._embed_client.do_embed([records[i].text for i in missing])
            records = list(records)
            for i, vector in zip(missing, vectors):
                records[i] = records[i].model_copy(update={"embedding": vector})
        for record in records:
            self.validate_dimension(record.embedding, operation="upsert", record_id=record.id)
        return records

    async def embed_query(self, query_text: str) -> list[float]:
        vector = await self._embed_client.do_embed_query(query_text)
        self.validate_dimension(vector, operation="search")
        return vector

    @staticmethod
    def matches_filter(metadata: VectorMetadata, filter: dict | None) -> bool:
        """Equality match of every filter key against the camelCase metadata payload."""
        if not filter:
            return True
        payload = metadata.to_payload()
        return all(payload.get(key) == value for key, value in filter.items())

    def resolve_top_k(self, top_k: int | None) -> int:
        return top_k or self.default_top_k

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_initialize(self) -> None:
        """Create or attach to the index/collection. Side-effecting.

        Raises:
            AppError: When initialization failure must stop the service.
        """
        pass

    @abstractmethod
    async def do_upsert(self, records: list[VectorRecord]) -> None:
        """Write records, embedding those without an embedding first.

        Raises:
            DimensionMismatchError: If an embedding has the wrong length.
            BackendUnavailableError | BackendError: On backend failure.
        """
        pass

    @abstractmethod
    async def do_search(self, query_text: str, top_k: int | None = None, filter: dict | None = None) -> list[SearchResult]:
        """Similarity search for query_text.

        Args:
            query_text (str): Natural-language query, embedded by the provider.
            top_k (int | None): Maximum results; defaults to TOP_K_RESULTS.
            filter (dict | None): camelCase metadata equality filter, e.g. {"documentId": "..."}.
        """
        pass

    @abstractmethod
    async def do_delete_by_document(self, document_id: str) -> int:
        """Delete every vector whose metadata.documentId equals document_id.

        Returns:
            int: Number of vectors deleted.
        """
        pass

    @abstractmethod
    async def do_delete_ids(self, ids: list[str]) -> None:
        """Delete vectors by explicit id. Unknown ids are ignored."""
        pass

    @abstractmethod
    async def do_stats(self) -> IndexStats:
        pass

    @abstractmethod
    async def do_clear(self) -> None:
        """Remove every vector from the index/collection."""
        pass
