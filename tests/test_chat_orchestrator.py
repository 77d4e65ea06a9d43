"""Tests pour l'orchestrateur du chat contextualisé.

Ce module teste l'assemblage du prompt système (résumé du thème, extraits, dates) et l'ouverture
de la complétion, avec un stockage de segments en mémoire.
"""

from __future__ import annotations

import pytest

from jyotish.domain.chart import parse_chart
from jyotish.domain.chat_orchestrator import (
    CHAT_TITLE,
    NO_CONTEXT,
    ChatOrchestrator,
    build_sources_metadata,
    build_system_prompt,
    chart_summary,
)
from jyotish.domain.retrieval_types import ChunkRecord, SearchResult
from jyotish.domain.retriever import Retriever, extract_date_mentions
from jyotish.infra.repo.chunk_store import ChunkStore
from tests.fakes import FakeCompletions, FakeEmbeddings, chart_payload

EXCERPT_LENGTH = 150


class MemoryChunkStore(ChunkStore):
    """Stockage factice: renvoie les résultats préparés et enregistre les recherches."""

    def __init__(self, results: list[SearchResult] | None = None) -> None:
        self.results = results or []
        self.searches: list[tuple[str, str, int]] = []

    async def insert_chunks(self, chunks: list[ChunkRecord]) -> int:
        return len(chunks)

    async def search(self, profile_id, query_embedding, query_text, limit):
        self.searches.append((profile_id, query_text, limit))
        return self.results[:limit]


def _result(i: int, content: str, similarity: float) -> SearchResult:
    return SearchResult(
        id=f"chunk{i}",
        content=content,
        metadata={"report_type": "career"},
        report_id="rep1",
        similarity=similarity,
    )


def test_chart_summary_lines() -> None:
    summary = chart_summary(parse_chart(chart_payload()))
    assert "- Lagna: Aries" in summary
    assert "- Moon: Cancer in 4th house, Pushya nakshatra" in summary
    assert "- Active Dasha: Jupiter - Saturn" in summary


def test_system_prompt_formats_sources_and_dates() -> None:
    chart = parse_chart(chart_payload())
    results = [_result(1, "Career rises.", 0.8766), _result(2, "Saturn delays.", 0.5)]
    prompt = build_system_prompt(chart, results, ["Feb 25", "2027"])
    assert "[Source 1 - Similarity: 87.7%]\nCareer rises." in prompt
    assert "\n\n---\n\n[Source 2 - Similarity: 50.0%]" in prompt
    assert "User is asking about: Feb 25, 2027" in prompt
    assert NO_CONTEXT not in prompt


def test_system_prompt_without_context() -> None:
    prompt = build_system_prompt(parse_chart(chart_payload()), [], [])
    assert NO_CONTEXT in prompt
    assert "## Date Context" not in prompt


def test_sources_metadata_truncates_excerpt() -> None:
    sources = build_sources_metadata([_result(1, "x" * 400, 0.9)])
    assert sources == [
        {
            "report_id": "rep1",
            "chunk_id": "chunk1",
            "report_type": "career",
            "excerpt": "x" * EXCERPT_LENGTH + "...",
            "similarity": 0.9,
        }
    ]


def test_extract_date_mentions() -> None:
    assert extract_date_mentions("What about Feb 25 and 3 March 2027?") == [
        "Feb 25",
        "3 March",
        "2027",
    ]
    assert extract_date_mentions("no dates here") == []


@pytest.mark.asyncio
async def test_generate_chat_response_orders_messages() -> None:
    store = MemoryChunkStore([_result(1, "Career rises.", 0.9)])
    completions = FakeCompletions()
    orchestrator = ChatOrchestrator(
        Retriever(FakeEmbeddings(), store), completions, top_k=3
    )
    history = [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello"},
    ]
    response = await orchestrator.generate_chat_response(
        "p1", parse_chart(chart_payload()), "My career?", history
    )
    await response.stream.aclose()

    assert store.searches == [("p1", "My career?", 3)]
    assert response.model == "fake/model"
    assert [r.id for r in response.results] == ["chunk1"]
    call = completions.calls[0]
    assert call["title"] == CHAT_TITLE
    roles = [m["role"] for m in call["messages"]]
    assert roles == ["system", "user", "assistant", "user"]
    assert call["messages"][-1]["content"] == "My career?"
    assert "Career rises." in call["messages"][0]["content"]


@pytest.mark.asyncio
async def test_model_override_is_forwarded() -> None:
    completions = FakeCompletions()
    orchestrator = ChatOrchestrator(Retriever(FakeEmbeddings(), MemoryChunkStore()), completions)
    response = await orchestrator.generate_chat_response(
        "p1", parse_chart(chart_payload()), "hi", [], model="other/model"
    )
    await response.stream.aclose()
    assert completions.calls[0]["model"] == "other/model"
