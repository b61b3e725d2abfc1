"""Prompt assembly and citation extraction for document chat.

Pure functions over search results, no I/O.
"""

import re

from shared.clients.rag.models.VectorPoint import SearchResult
from shared.models.chat import Citation

CITATION_PREVIEW_CHARS = 200
FALLBACK_CITATIONS = 3
CONTEXT_SEPARATOR = "\n---\n"

_PAGE_PATTERN = re.compile(r"\[Page (\d+)\]")

SYSTEM_PROMPT_TEMPLATE = """You are a helpful AI assistant that answers questions based on the provided PDF document context.

IMPORTANT INSTRUCTIONS:
1. Answer questions ONLY based on the provided context
2. If the answer is not in the context, say "I cannot find that information in the document"
3. Provide specific page references when answering, using the format [Page X]
4. Be concise but comprehensive
5. If you reference information, cite the page number

Context from document:
{context}"""


def build_context(search_results: list[SearchResult]) -> str:
    """Render search results as "[Page n]" blocks in the order given."""
    return CONTEXT_SEPARATOR.join(f"[Page {r.page_number}]\n{r.text}\n" for r in search_results)


def build_system_prompt(search_results: list[SearchResult]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=build_context(search_results))


def mentioned_pages(response_text: str) -> set[int]:
    """Distinct page numbers referenced as "[Page N]" in a response."""
    return {int(n) for n in _PAGE_PATTERN.findall(response_text)}


def to_citation(result: SearchResult) -> Citation:
    return Citation(
        id=result.id,
        page_number=result.page_number,
        text=result.text[:CITATION_PREVIEW_CHARS],
        score=result.score,
    )


def extract_citations(response_text: str, search_results: list[SearchResult]) -> list[Citation]:
    """Derive the citations of an assistant answer.

    Every search result whose page the answer mentions as "[Page N]" is cited,
    in the order of search_results. If the answer mentions no page of any
    result, the top 3 results by score are cited instead, so an answer only
    goes without citations when the search returned nothing.

    Args:
        response_text (str): Raw completion text.
        search_results (list[SearchResult]): Results the answer was generated from.

    Returns:
        list[Citation]: At most one citation per search result.
    """
    pages = mentioned_pages(response_text)
    citations = [to_citation(r) for r in search_results if r.page_number in pages]
    if not citations and search_results:
        top = sorted(search_results, key=lambda r: r.score, reverse=True)[:FALLBACK_CITATIONS]
        citations = [to_citation(r) for r in top]
    return citations
