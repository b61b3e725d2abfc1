"""FastAPI application entry point for the PDF chat service."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.errors.errors import AppError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from services.chat.ChatService import ChatService
from services.chunking.TextChunker import get_text_chunker
from services.ingest.IngestService import IngestService
from services.ingest.PdfExtractor import PdfExtractor
from services.stores.DocumentRegistry import DocumentRegistry
from services.stores.SessionStore import SessionStore
from server.dependencies.error_handlers import register_error_handlers
from server.routers.ChatRouter import router as chat_router
from server.routers.DocumentRouter import router as document_router
from server.routers.SystemRouter import router as system_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = helper_config = HelperConfig(logger=logging)

    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    rag_client = RAGClientManager(helper_config=helper_config, embed_client=llm_client).get_client()

    clients = [llm_client, rag_client]

    logging.info("Booting all clients...")
    try:
        for client in clients:
            await client.boot()
        logging.info("All clients booted successfully.")

        # pinecone raises here and aborts startup, chroma degrades
        await rag_client.do_initialize()
    except AppError as e:
        logging.error("Vector backend '%s' failed to initialize: %s", rag_client.get_engine_name(), e)
        await close_clients(clients)
        raise
    await check_provider(llm_client)

    app.state.llm_client = llm_client
    app.state.rag_client = rag_client
    app.state.session_store = SessionStore(helper_config=helper_config)
    app.state.document_registry = DocumentRegistry(helper_config=helper_config)

    app.state.chat_service = ChatService(
        helper_config=helper_config,
        session_store=app.state.session_store,
        document_registry=app.state.document_registry,
        rag_client=rag_client,
        llm_client=llm_client,
    )
    app.state.ingest_service = IngestService(
        helper_config=helper_config,
        document_registry=app.state.document_registry,
        rag_client=rag_client,
        llm_client=llm_client,
        chunker=get_text_chunker(helper_config),
        extractor=PdfExtractor(helper_config=helper_config),
    )

    # while the app is running...
    yield

    # when the app shuts down, close all client connections and drop in-memory state
    logging.info("Shutting down, closing all clients...")
    await close_clients(clients)
    await app.state.session_store.close()
    await app.state.document_registry.close()
    logging.info("All clients closed.")


async def close_clients(clients: list[ClientInterface]) -> None:
    for client in clients:
        await client.close()


async def check_provider(llm_client: LLMClientInterface) -> None:
    """Check that the provider answers on startup.

    Failures are non-fatal: the server stays up and requests needing the
    provider fail with its error until it is reachable.
    """
    try:
        result = await llm_client.do_healthcheck()
    except AppError as e:
        logging.warning("LLM client '%s' is not reachable: %s. Embedding and chat will fail.", llm_client.get_engine_name(), e)
        return
    if not result.is_success:
        logging.warning(
            "LLM client '%s' answered the healthcheck with status %d. Embedding and chat may fail.",
            llm_client.get_engine_name(),
            result.status_code,
        )


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the application with routers, CORS and error handlers.

    Args:
        use_lifespan (bool): Wire clients, stores and services on startup.
            Without it the caller populates app.state itself.
    """
    app = FastAPI(
        title="pdf_chat",
        description=(
            "Chat with your PDF documents. Uploaded PDFs are split into chunks, "
            "embedded and indexed in a vector database; questions are answered "
            "from the most similar chunks with page citations."
        ),
        version=app_version,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[os.getenv("FRONTEND_URL", "http://localhost:3000")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(system_router)
    app.include_router(chat_router)
    app.include_router(document_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "3001"))
    logging.info(
        "Starting pdf_chat API Server v%s from root dir: %s on port %d...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
        port,
    )
    uvicorn.run(app, host="0.0.0.0", port=port)
