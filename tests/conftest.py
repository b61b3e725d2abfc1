"""Pytest configuration and fixtures for the PDF chat tests"""

import logging

import pytest
import pytest_asyncio

from fakes import (
    CHROMA_BASE_URL,
    OPENAI_BASE_URL,
    PINECONE_CONTROLLER_URL,
    FakeChroma,
    FakeOpenAI,
    FakePinecone,
)
from services.chunking.TextChunker import WordTextChunker
from services.stores.DocumentRegistry import DocumentRegistry
from services.stores.SessionStore import SessionStore
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.chroma.RAGClientChroma import RAGClientChroma
from shared.clients.rag.pinecone.RAGClientPinecone import RAGClientPinecone
from shared.helper.HelperConfig import HelperConfig

EMBED_DIMENSION = 8


@pytest.fixture
def env(monkeypatch, tmp_path):
    """Environment of a test deployment pointing at the in-memory fakes"""
    values = {
        "LLM_ENGINE": "openai",
        "LLM_OPENAI_API_KEY": "sk-test",
        "LLM_OPENAI_BASE_URL": OPENAI_BASE_URL,
        "LLM_EMBED_DIMENSION": str(EMBED_DIMENSION),
        "RAG_ENGINE": "pinecone",
        "RAG_PINECONE_API_KEY": "pc-test-key",
        "RAG_PINECONE_CONTROLLER_URL": PINECONE_CONTROLLER_URL,
        "RAG_PINECONE_READY_INTERVAL": "0",
        "RAG_PINECONE_READY_TIMEOUT": "5",
        "RAG_CHROMA_BASE_URL": CHROMA_BASE_URL,
        "CHUNK_SIZE": "3",
        "CHUNK_OVERLAP": "1",
        "TOP_K_RESULTS": "5",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "APP_API_KEY": "",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


@pytest.fixture
def helper_config(env):
    """HelperConfig reading the test environment"""
    return HelperConfig(logger=logging.getLogger("pdf_chat.tests"))


@pytest.fixture
def fake_openai():
    return FakeOpenAI(dimension=EMBED_DIMENSION)


@pytest.fixture
def fake_pinecone():
    return FakePinecone(dimension=EMBED_DIMENSION)


@pytest.fixture
def fake_chroma():
    return FakeChroma()


@pytest_asyncio.fixture
async def llm_client(helper_config, fake_openai):
    """OpenAI client booted against the fake provider"""
    client = LLMClientOpenai(helper_config=helper_config)
    await client.boot(transport=fake_openai.transport)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def pinecone_client(helper_config, llm_client, fake_pinecone):
    """Initialized Pinecone client"""
    client = RAGClientPinecone(helper_config=helper_config, embed_client=llm_client)
    await client.boot(transport=fake_pinecone.transport)
    await client.do_initialize()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def chroma_client(helper_config, llm_client, fake_chroma):
    """Initialized Chroma client"""
    client = RAGClientChroma(helper_config=helper_config, embed_client=llm_client)
    await client.boot(transport=fake_chroma.transport)
    await client.do_initialize()
    yield client
    await client.close()


@pytest_asyncio.fixture(params=["pinecone", "chroma"])
async def backend(request, helper_config, llm_client, fake_pinecone, fake_chroma):
    """Each vector backend with the fake behind it, as (client, fake)"""
    if request.param == "pinecone":
        client, fake = RAGClientPinecone(helper_config=helper_config, embed_client=llm_client), fake_pinecone
    else:
        client, fake = RAGClientChroma(helper_config=helper_config, embed_client=llm_client), fake_chroma
    await client.boot(transport=fake.transport)
    await client.do_initialize()
    yield client, fake
    await client.close()


@pytest.fixture
def session_store(helper_config):
    return SessionStore(helper_config=helper_config)


@pytest.fixture
def document_registry(helper_config):
    return DocumentRegistry(helper_config=helper_config)


@pytest.fixture
def word_chunker(helper_config):
    """Word chunker with size 3 and overlap 1"""
    return WordTextChunker(helper_config=helper_config)
