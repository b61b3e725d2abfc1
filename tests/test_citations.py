"""Unit tests for citation extraction and context assembly"""

from services.chat.citations import build_context, build_system_prompt, extract_citations, mentioned_pages
from shared.clients.rag.models.VectorPoint import SearchResult, VectorMetadata


def _result(page: int, score: float, text: str | None = None, index: int = 0) -> SearchResult:
    return SearchResult(
        id=f"doc_chunk_{index}",
        text=text if text is not None else f"text of page {page}",
        score=score,
        metadata=VectorMetadata(document_id="doc", page_number=page, chunk_index=index, start_char=0, end_char=10),
    )


class TestExtractCitations:
    """Test ExtractCitations"""

    def test_mentioned_pages_are_cited_in_result_order(self):
        """Results for pages 3 and 7 are cited, in the original score order"""
        results = [_result(7, 0.9, index=0), _result(2, 0.8, index=1), _result(3, 0.7, index=2)]

        citations = extract_citations("See [Page 3] and also [Page 7].", results)

        assert [c.page_number for c in citations] == [7, 3]
        assert [c.id for c in citations] == ["doc_chunk_0", "doc_chunk_2"]
        assert [c.score for c in citations] == [0.9, 0.7]

    def test_fallback_to_top_three_by_score(self):
        """No page markers and five results: the three best are cited"""
        results = [
            _result(1, 0.2, index=0),
            _result(2, 0.9, index=1),
            _result(3, 0.5, index=2),
            _result(4, 0.7, index=3),
            _result(5, 0.1, index=4),
        ]

        citations = extract_citations("No markers here.", results)

        assert [c.score for c in citations] == [0.9, 0.7, 0.5]
        assert [c.page_number for c in citations] == [2, 4, 3]

    def test_fallback_when_mentioned_pages_were_not_retrieved(self):
        results = [_result(1, 0.9), _result(2, 0.8)]

        citations = extract_citations("It is on [Page 9].", results)

        assert [c.page_number for c in citations] == [1, 2]

    def test_no_results_no_citations(self):
        assert extract_citations("Something about [Page 1].", []) == []

    def test_one_citation_per_result(self):
        """Repeating a page mention does not duplicate citations"""
        results = [_result(4, 0.9, index=0), _result(4, 0.6, index=1)]

        citations = extract_citations("[Page 4] ... [Page 4] ... [Page 4]", results)

        assert [c.id for c in citations] == ["doc_chunk_0", "doc_chunk_1"]

    def test_preview_is_truncated_to_200_chars(self):
        citations = extract_citations("[Page 1]", [_result(1, 0.5, text="x" * 500)])

        assert citations[0].text == "x" * 200

    def test_malformed_markers_are_ignored(self):
        assert mentioned_pages("[page 2] [Page two] Page 3 [Page 4]") == {4}


class TestBuildContext:
    """Test context assembly"""

    def test_blocks_in_search_order(self):
        results = [_result(2, 0.9, text="second page"), _result(1, 0.5, text="first page")]

        context = build_context(results)

        assert context == "[Page 2]\nsecond page\n\n---\n[Page 1]\nfirst page\n"

    def test_system_prompt_embeds_context(self):
        prompt = build_system_prompt([_result(5, 0.9, text="the content")])

        assert "[Page X]" in prompt
        assert "I cannot find that information in the document" in prompt
        assert prompt.endswith("Context from document:\n[Page 5]\nthe content\n")
