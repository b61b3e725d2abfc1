import asyncio
import time

import httpx

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import IndexStats, SearchResult, VectorMetadata, VectorRecord
from shared.errors.errors import BackendError, BackendUnavailableError, DimensionMismatchError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import chunk_id_prefix
from shared.models.config import EnvConfig

MAX_TOP_K = 10000           # Pinecone query limit
FILTER_OVERFETCH = 5        # query top_k * 5 when filtering in memory
DELETE_BATCH_SIZE = 1000    # Pinecone delete-by-id limit
LIST_PAGE_SIZE = 100


class RAGClientPinecone(RAGClientInterface):
    """Serverless Pinecone index over its REST API.

    Serverless indexes do not reliably support metadata filters at query time
    nor delete-by-filter, so filtering happens in memory after an over-fetched
    query and deletes go out as explicit id lists.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: LLMClientInterface):
        super().__init__(helper_config=helper_config, embed_client=embed_client)
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._index_name = self.get_config_val("INDEX", default="pdf-documents", val_type="string")
        self._controller_url = self.get_config_val("CONTROLLER_URL", default="https://api.pinecone.io", val_type="string")
        self._cloud = self.get_config_val("CLOUD", default="aws", val_type="string")
        self._region = self.get_config_val("REGION", default="us-east-1", val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="2025-01", val_type="string")
        self._ready_timeout = float(self.get_config_val("READY_TIMEOUT", default=60, val_type="number"))
        self._ready_interval = float(self.get_config_val("READY_INTERVAL", default=2, val_type="number"))
        self._index_host: str | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Pinecone"

    def is_available(self) -> bool:
        return self._index_host is not None

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="INDEX", val_type="string", default="pdf-documents"),
            EnvConfig(env_key="CONTROLLER_URL", val_type="string", default="https://api.pinecone.io"),
            EnvConfig(env_key="CLOUD", val_type="string", default="aws"),
            EnvConfig(env_key="REGION", val_type="string", default="us-east-1"),
            EnvConfig(env_key="API_VERSION", val_type="string", default="2025-01"),
            EnvConfig(env_key="READY_TIMEOUT", val_type="number", default=60),
            EnvConfig(env_key="READY_INTERVAL", val_type="number", default=2),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Api-Key": self._api_key, "X-Pinecone-API-Version": self._api_version}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        if self._index_host is None:
            raise BackendUnavailableError("Pinecone index not initialized.", operation="pinecone")
        host = self._index_host
        return host if host.startswith("http") else f"https://{host}"

    def _get_endpoint_healthcheck(self) -> str:
        return f"/indexes/{self._index_name}"

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), base_url=self._controller_url)

    ##########################################
    ############# INITIALIZATION #############
    ##########################################

    async def _describe_index(self) -> dict | None:
        resp = await self.do_request(
            method="GET",
            endpoint=f"/indexes/{self._index_name}",
            base_url=self._controller_url,
            operation="describe_index",
        )
        if resp.status_code == 404:
            return None
        if not resp.is_success:
            raise BackendError(
                f"Describing Pinecone index '{self._index_name}' failed with status {resp.status_code}: {self.extract_error_message(resp)}",
                operation="describe_index",
            )
        return resp.json()

    async def _create_index(self) -> dict:
        self.logging.info("Creating Pinecone index: %s (dimension=%d, metric=cosine)", self._index_name, self.dimension)
        resp = await self.do_request(
            method="POST",
            endpoint="/indexes",
            base_url=self._controller_url,
            json={
                "name": self._index_name,
                "dimension": self.dimension,
                "metric": "cosine",
                "spec": {"serverless": {"cloud": self._cloud, "region": self._region}},
            },
            raise_on_error=True,
            operation="create_index",
        )
        return resp.json()

    async def do_initialize(self) -> None:
        """Attach to the index, creating it first if missing, and wait until it is ready.

        Raises:
            DimensionMismatchError: If the existing index has another dimension.
            BackendUnavailableError: If the index does not become ready in time.
            BackendError: If Pinecone rejects a control-plane request.
        """
        self.logging.info("Initializing Pinecone index '%s'...", self._index_name)
        description = await self._describe_index()
        if description is None:
            description = await self._create_index()

        dimension = description.get("dimension")
        if dimension is not None and int(dimension) != self.dimension:
            raise DimensionMismatchError(
                f"Pinecone index '{self._index_name}' has dimension {dimension}, embeddings have {self.dimension}.",
                operation="initialize",
            )

        deadline = time.monotonic() + self._ready_timeout
        while not (description.get("status") or {}).get("ready"):
            if time.monotonic() >= deadline:
                raise BackendUnavailableError(
                    f"Pinecone index '{self._index_name}' did not become ready within {self._ready_timeout:.0f}s.",
                    operation="initialize",
                )
            self.logging.info("Waiting for Pinecone index '%s' to be ready...", self._index_name)
            await asyncio.sleep(self._ready_interval)
            description = await self._describe_index() or {}

        self._index_host = description.get("host")
        if not self._index_host:
            raise BackendError(f"Pinecone index '{self._index_name}' has no host.", operation="initialize")
        self.logging.info("Pinecone initialized successfully (host=%s)", self._index_host)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @staticmethod
    def _to_search_result(match: dict) -> SearchResult:
        metadata = match.get("metadata") or {}
        return SearchResult(
            id=match["id"],
            text=metadata.get("text", ""),
            score=float(match.get("score", 0.0)),
            metadata=VectorMetadata.model_validate(metadata),
        )

    async def _query(self, vector: list[float], top_k: int, operation: str) -> list[dict]:
        resp = await self.do_request(
            method="POST",
            endpoint="/query",
            json={"vector": vector, "topK": top_k, "includeMetadata": True, "includeValues": False},
            raise_on_error=True,
            operation=operation,
        )
        return resp.json().get("matches") or []

    async def do_upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        records = await self.ensure_embeddings(records)
        self.logging.info("Adding %d vectors to Pinecone", len(records))
        vectors = [
            {
                "id": record.id,
                "values": record.embedding,
                "metadata": {**record.metadata.to_payload(), "text": record.text},
            }
            for record in records
        ]
        await self.do_request(
            method="POST",
            endpoint="/vectors/upsert",
            json={"vectors": vectors},
            raise_on_error=True,
            operation="upsert",
        )

    async def do_search(self, query_text: str, top_k: int | None = None, filter: dict | None = None) -> list[SearchResult]:
        k = self.resolve_top_k(top_k)
        self.logging.info("Searching Pinecone for: %r (top %d)", query_text[:50], k)
        vector = await self.embed_query(query_text)

        # no server-side filter on serverless: over-fetch, then filter in memory
        query_k = min(k * FILTER_OVERFETCH, MAX_TOP_K) if filter else k
        matches = await self._query(vector, query_k, operation="search")

        results = [self._to_search_result(m) for m in matches]
        if filter:
            results = [r for r in results if self.matches_filter(r.metadata, filter)]
        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:k]
        self.logging.info("Found %d results in Pinecone", len(results))
        return results

    async def _list_ids_by_prefix(self, prefix: str) -> list[str]:
        """Page through /vectors/list for every id starting with prefix."""
        ids: list[str] = []
        token: str | None = None
        while True:
            params = {"prefix": prefix, "limit": LIST_PAGE_SIZE}
            if token:
                params["paginationToken"] = token
            resp = await self.do_request(
                method="GET",
                endpoint="/vectors/list",
                params=params,
                raise_on_error=True,
                operation="delete_by_document",
            )
            body = resp.json()
            ids.extend(v["id"] for v in body.get("vectors") or [])
            token = (body.get("pagination") or {}).get("next")
            if not token:
                return ids

    async def do_delete_by_document(self, document_id: str) -> int:
        self.logging.info("Deleting document from Pinecone: %s", document_id)

        # broad query with a placeholder vector; only the metadata matters
        placeholder = [1.0] * self.dimension
        matches = await self._query(placeholder, MAX_TOP_K, operation="delete_by_document")
        candidates = {
            m["id"] for m in matches
            if (m.get("metadata") or {}).get("documentId") == document_id
        }
        # chunk ids are deterministic, so a prefix listing reaches vectors outside the query window
        candidates.update(await self._list_ids_by_prefix(chunk_id_prefix(document_id)))

        if not candidates:
            self.logging.info("No vectors found for document %s", document_id)
            return 0
        await self.do_delete_ids(sorted(candidates))
        self.logging.info("Deleted %d vectors for document %s", len(candidates), document_id)
        return len(candidates)

    async def do_delete_ids(self, ids: list[str]) -> None:
        for start in range(0, len(ids), DELETE_BATCH_SIZE):
            await self.do_request(
                method="POST",
                endpoint="/vectors/delete",
                json={"ids": ids[start: start + DELETE_BATCH_SIZE]},
                raise_on_error=True,
                operation="delete_ids",
            )

    async def do_stats(self) -> IndexStats:
        resp = await self.do_request(
            method="POST",
            endpoint="/describe_index_stats",
            json={},
            raise_on_error=True,
            operation="stats",
        )
        body = resp.json()
        count = body.get("totalVectorCount", body.get("totalRecordCount", 0)) or 0
        return IndexStats(engine=self.get_engine_name(), count=int(count))

    async def do_clear(self) -> None:
        self.logging.info("Clearing Pinecone index...")
        resp = await self.do_request(
            method="POST",
            endpoint="/vectors/delete",
            json={"deleteAll": True},
            operation="clear",
        )
        # an index without any vector has no default namespace yet
        if not resp.is_success and resp.status_code != 404:
            raise BackendError(
                f"Clearing Pinecone index failed with status {resp.status_code}: {self.extract_error_message(resp)}",
                operation="clear",
            )
        self.logging.info("Pinecone index cleared")
