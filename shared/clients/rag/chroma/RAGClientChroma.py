from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import IndexStats, SearchResult, VectorMetadata, VectorRecord
from shared.errors.errors import AppError, BackendUnavailableError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

COLLECTION_DESCRIPTION = "PDF document chunks with embeddings"


class RAGClientChroma(RAGClientInterface):
    """Local Chroma server over its v2 REST API.

    Chroma filters natively with "where" on query, get and delete. It reports
    distances, converted to scores with 1 / (1 + distance).

    If initialization fails the client stays in a degraded mode: stats report
    it as unavailable, clear is a no-op and every other call raises
    BackendUnavailableError.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: LLMClientInterface):
        super().__init__(helper_config=helper_config, embed_client=embed_client)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:8000", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="pdf_documents", val_type="string")
        self._tenant = self.get_config_val("TENANT", default="default_tenant", val_type="string")
        self._database = self.get_config_val("DATABASE", default="default_database", val_type="string")
        self._collection_id: str | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Chroma"

    def is_available(self) -> bool:
        return self._collection_id is not None

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:8000"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="pdf_documents"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"x-chroma-token": self._api_key}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/v2/heartbeat"

    def _get_endpoint_collections(self) -> str:
        return f"/api/v2/tenants/{self._tenant}/databases/{self._database}/collections"

    @staticmethod
    def _build_where(filter: dict | None) -> dict | None:
        """Chroma accepts one equality per "where"; several keys are combined with $and."""
        if not filter:
            return None
        if len(filter) == 1:
            return dict(filter)
        return {"$and": [{key: value} for key, value in filter.items()]}

    def _get_endpoint_collection(self, action: str = "") -> str:
        if self._collection_id is None:
            raise BackendUnavailableError("ChromaDB collection not initialized.", operation="chroma")
        suffix = f"/{action}" if action else ""
        return f"{self._get_endpoint_collections()}/{self._collection_id}{suffix}"

    ##########################################
    ############# INITIALIZATION #############
    ##########################################

    async def _get_or_create_collection(self) -> str:
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_collections(),
            json={
                "name": self._collection_name,
                "metadata": {"description": COLLECTION_DESCRIPTION},
                "get_or_create": True,
            },
            raise_on_error=True,
            operation="initialize",
        )
        return resp.json()["id"]

    async def do_initialize(self) -> None:
        """Attach to (or create) the collection; failures degrade instead of raising."""
        self.logging.info("Initializing ChromaDB collection '%s'...", self._collection_name)
        try:
            await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True, operation="initialize")
            self._collection_id = await self._get_or_create_collection()
        except (AppError, KeyError, ValueError) as exc:
            self._collection_id = None
            self.logging.error("Error initializing ChromaDB: %s", exc)
            self.logging.warning("Running without vector store - indexing and search are unavailable")
            return
        self.logging.info("ChromaDB initialized successfully (collection id=%s)", self._collection_id)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        endpoint = self._get_endpoint_collection("upsert")
        records = await self.ensure_embeddings(records)
        self.logging.info("Adding %d vectors to ChromaDB", len(records))
        await self.do_request(
            method="POST",
            endpoint=endpoint,
            json={
                "ids": [r.id for r in records],
                "embeddings": [r.embedding for r in records],
                "documents": [r.text for r in records],
                "metadatas": [{**r.metadata.to_payload(), "text": r.text_preview} for r in records],
            },
            raise_on_error=True,
            operation="upsert",
        )

    async def do_search(self, query_text: str, top_k: int | None = None, filter: dict | None = None) -> list[SearchResult]:
        endpoint = self._get_endpoint_collection("query")
        k = self.resolve_top_k(top_k)
        self.logging.info("Searching ChromaDB for: %r (top %d)", query_text[:50], k)
        vector = await self.embed_query(query_text)

        body: dict = {
            "query_embeddings": [vector],
            "n_results": k,
            "include": ["documents", "metadatas", "distances"],
        }
        where = self._build_where(filter)
        if where:
            body["where"] = where
        resp = await self.do_request(method="POST", endpoint=endpoint, json=body, raise_on_error=True, operation="search")
        data = resp.json()

        ids = (data.get("ids") or [[]])[0]
        documents = (data.get("documents") or [[]])[0]
        metadatas = (data.get("metadatas") or [[]])[0]
        distances = (data.get("distances") or [[]])[0]

        results: list[SearchResult] = []
        for i, id_ in enumerate(ids):
            distance = distances[i] if i < len(distances) and distances[i] is not None else 0.0
            results.append(
                SearchResult(
                    id=id_,
                    text=documents[i] or "",
                    score=1.0 / (1.0 + float(distance)),
                    metadata=VectorMetadata.model_validate(metadatas[i]),
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        self.logging.info("Found %d results in ChromaDB", len(results))
        return results

    async def do_delete_by_document(self, document_id: str) -> int:
        endpoint = self._get_endpoint_collection("get")
        self.logging.info("Deleting document from ChromaDB: %s", document_id)
        resp = await self.do_request(
            method="POST",
            endpoint=endpoint,
            json={"where": {"documentId": document_id}, "include": []},
            raise_on_error=True,
            operation="delete_by_document",
        )
        ids = resp.json().get("ids") or []
        if not ids:
            self.logging.info("No chunks found for document %s", document_id)
            return 0
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_collection("delete"),
            json={"where": {"documentId": document_id}},
            raise_on_error=True,
            operation="delete_by_document",
        )
        self.logging.info("Deleted %d chunks for document %s", len(ids), document_id)
        return len(ids)

    async def do_delete_ids(self, ids: list[str]) -> None:
        if not ids:
            return
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_collection("delete"),
            json={"ids": ids},
            raise_on_error=True,
            operation="delete_ids",
        )

    async def do_stats(self) -> IndexStats:
        if not self.is_available():
            return IndexStats(engine=self.get_engine_name(), count=0, available=False)
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_collection("count"),
            raise_on_error=True,
            operation="stats",
        )
        return IndexStats(engine=self.get_engine_name(), count=int(resp.json()))

    async def do_clear(self) -> None:
        if not self.is_available():
            return
        self.logging.info("Clearing ChromaDB collection...")
        await self.do_request(
            method="DELETE",
            endpoint=f"{self._get_endpoint_collections()}/{self._collection_name}",
            raise_on_error=True,
            operation="clear",
        )
        self._collection_id = None
        self._collection_id = await self._get_or_create_collection()
        self.logging.info("ChromaDB collection cleared")
