"""Tests for ChatService against the fake provider and both vector backends"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from services.chat.ChatService import ChatService
from services.ingest.IngestService import IngestService
from services.ingest.PdfExtractor import PdfExtractor
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors.errors import BackendError, NotFoundError, ProviderError, ValidationError
from shared.models.document import DocumentMetadata, ExtractedPage


def _pages(*texts: str) -> list[ExtractedPage]:
    pages, offset = [], 0
    for i, text in enumerate(texts):
        pages.append(ExtractedPage(page_number=i + 1, text=text, start_char=offset, end_char=offset + len(text)))
        offset += len(text)
    return pages


@pytest.fixture
def make_services(helper_config, session_store, document_registry, llm_client, word_chunker):
    """(ChatService, IngestService) sharing stores for a given backend"""
    def factory(rag_client):
        chat = ChatService(
            helper_config=helper_config,
            session_store=session_store,
            document_registry=document_registry,
            rag_client=rag_client,
            llm_client=llm_client,
        )
        ingest = IngestService(
            helper_config=helper_config,
            document_registry=document_registry,
            rag_client=rag_client,
            llm_client=llm_client,
            chunker=word_chunker,
            extractor=Mock(spec=PdfExtractor),
        )
        return chat, ingest
    return factory


class TestSendMessage:
    """Test SendMessage on both backends"""

    @pytest.mark.asyncio
    async def test_session_scenario(self, backend, make_services):
        """Two exchanges, clear, delete"""
        # Arrange
        rag_client, _ = backend
        chat, ingest = make_services(rag_client)
        await ingest.do_index_document("doc1", _pages("apples and pears", "bananas are yellow"))
        session = await chat.create_session("doc1")

        # Act
        await chat.send_message(session.id, "doc1", "hi")
        await chat.send_message(session.id, "doc1", "hi")
        history = chat.get_history(session.id)

        # Assert
        assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]
        assert [m.content for m in history if m.role == "user"] == ["hi", "hi"]
        assert all(m.session_id == session.id for m in history)

        await chat.clear_history(session.id)
        assert chat.get_history(session.id) == []

        await chat.delete_session(session.id)
        with pytest.raises(NotFoundError):
            chat.get_history(session.id)

    @pytest.mark.asyncio
    async def test_answer_cites_retrieved_pages(self, backend, make_services, fake_openai):
        rag_client, _ = backend
        chat, ingest = make_services(rag_client)
        await ingest.do_index_document("doc1", _pages("apples and pears", "bananas are yellow"))
        fake_openai.reply = lambda messages: "Bananas are yellow [Page 2]."

        answer = await chat.send_message("s1", "doc1", "what colour are bananas")

        assert answer.role == "assistant"
        assert answer.content == "Bananas are yellow [Page 2]."
        assert [c.page_number for c in answer.citations] == [2]
        assert answer.citations[0].id == "doc1_chunk_1"

    @pytest.mark.asyncio
    async def test_search_is_restricted_to_the_document(self, backend, make_services, fake_openai):
        rag_client, _ = backend
        chat, ingest = make_services(rag_client)
        await ingest.do_index_document("doc1", _pages("apples and pears"))
        await ingest.do_index_document("doc2", _pages("apples and pears too"))
        fake_openai.reply = lambda messages: "no markers"

        answer = await chat.send_message("s1", "doc1", "apples")

        assert {c.id for c in answer.citations} == {"doc1_chunk_0"}
        system_prompt = fake_openai.chat_calls[0][0]["content"]
        assert "[Page 1]\napples and pears\n" in system_prompt
        assert "too" not in system_prompt

    @pytest.mark.asyncio
    async def test_unknown_session_is_created(self, pinecone_client, make_services):
        chat, ingest = make_services(pinecone_client)
        await ingest.do_index_document("doc1", _pages("apples"))

        await chat.send_message("fresh", "doc1", "hello")

        assert len(chat.get_history("fresh")) == 2
        assert [s.id for s in chat.list_sessions_by_document("doc1")] == ["fresh"]

    @pytest.mark.asyncio
    async def test_history_window_ends_with_current_question(self, pinecone_client, make_services, fake_openai):
        chat, ingest = make_services(pinecone_client)
        await ingest.do_index_document("doc1", _pages("apples"))
        for i in range(5):
            await chat.send_message("s1", "doc1", f"question {i}")

        messages = fake_openai.chat_calls[-1]

        assert messages[0]["role"] == "system"
        assert [m["content"] for m in messages[1:-1] if m["role"] == "user"] == ["question 2", "question 3", "question 4"]
        assert len(messages[1:-1]) == 6
        assert messages[-2] == messages[-1] == {"role": "user", "content": "question 4"}
        assert all(set(m) == {"role", "content"} for m in messages)

    @pytest.mark.asyncio
    async def test_unknown_document(self, pinecone_client, make_services):
        chat, _ = make_services(pinecone_client)

        with pytest.raises(NotFoundError):
            await chat.send_message("s1", "missing", "hello")
        with pytest.raises(NotFoundError):
            chat.get_history("s1")

    @pytest.mark.asyncio
    async def test_session_bound_to_other_document(self, pinecone_client, make_services):
        chat, ingest = make_services(pinecone_client)
        await ingest.do_index_document("doc1", _pages("apples"))
        await ingest.do_index_document("doc2", _pages("pears"))
        await chat.send_message("s1", "doc1", "hello")

        with pytest.raises(ValidationError):
            await chat.send_message("s1", "doc2", "hello")
        assert len(chat.get_history("s1")) == 2

    @pytest.mark.asyncio
    async def test_provider_failure_stores_nothing(self, pinecone_client, make_services, fake_openai):
        """A failed completion leaves the session exactly as before"""
        chat, ingest = make_services(pinecone_client)
        await ingest.do_index_document("doc1", _pages("apples"))
        await chat.send_message("s1", "doc1", "first")
        fake_openai.fail_with = 503

        with pytest.raises(ProviderError) as exc_info:
            await chat.send_message("s1", "doc1", "second")

        assert "provider exploded" in str(exc_info.value)
        assert [m.content for m in chat.get_history("s1") if m.role == "user"] == ["first"]

    @pytest.mark.asyncio
    async def test_backend_failure_creates_no_session(self, chroma_client, fake_chroma, make_services, document_registry):
        chat, _ = make_services(chroma_client)
        await document_registry.register(DocumentMetadata(id="doc1", filename="f", original_name="f", uploaded_at=datetime.now(timezone.utc)))
        fake_chroma.collections.clear()

        with pytest.raises(BackendError):
            await chat.send_message("s1", "doc1", "hello")

        with pytest.raises(NotFoundError):
            chat.get_history("s1")


class TestConcurrency:
    """Concurrent messages to one session"""

    @pytest.mark.asyncio
    async def test_concurrent_messages_are_serialized(self, helper_config, session_store, document_registry):
        # Arrange
        await document_registry.register(DocumentMetadata(id="doc1", filename="f", original_name="f", uploaded_at=datetime.now(timezone.utc)))
        rag_client = Mock(spec=RAGClientInterface)
        rag_client.do_search = AsyncMock(return_value=[])
        llm_client = Mock(spec=LLMClientInterface)

        async def slow_complete(system_prompt, history, user_message):
            await asyncio.sleep(0.01)
            return f"answer to {user_message} after {len(history)}"

        llm_client.do_complete = AsyncMock(side_effect=slow_complete)
        chat = ChatService(
            helper_config=helper_config,
            session_store=session_store,
            document_registry=document_registry,
            rag_client=rag_client,
            llm_client=llm_client,
        )

        # Act
        await asyncio.gather(*(chat.send_message("s1", "doc1", f"q{i}") for i in range(5)))

        # Assert
        history = chat.get_history("s1")
        assert len(history) == 10
        assert [m.role for m in history] == ["user", "assistant"] * 5
        for i in range(5):
            user, assistant = history[2 * i], history[2 * i + 1]
            assert assistant.content == f"answer to {user.content} after {min(2 * i, 5) + 1}"
            assert assistant.citations == []
