"""
Orchestrateur du chat contextualisé (RAG).

Étapes: mentions de dates, récupération des segments du profil, prompt système (résumé du thème
+ extraits + contexte temporel), puis complétion en streaming. Le flux est rendu tel quel à
l'appelant, qui le relaie et persiste l'échange.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from jyotish.domain.chart import ChartData, ordinal
from jyotish.domain.retrieval_types import SearchResult
from jyotish.domain.retriever import Retriever, extract_date_mentions
from jyotish.infra.llm.base import CompletionProvider, CompletionStream

log = structlog.get_logger(__name__)

CHAT_TITLE = "JyotishAI Chat"
NO_CONTEXT = "No specific reports found for this query."


@dataclass
class ChatResponse:
    """Flux brut de la complétion et segments utilisés pour la construire."""

    stream: CompletionStream
    results: list[SearchResult]
    model: str


def chart_summary(chart: ChartData) -> str:
    """Résumé condensé: lagna, Soleil, Lune (nakshatra) et dasha actif."""
    sun = chart.planet("Sun")
    moon = chart.planet("Moon")
    current = chart.dashas.current
    return "\n".join(
        [
            f"- Lagna: {chart.lagna.sign}",
            f"- Sun: {sun.sign} in {ordinal(sun.house)} house",
            f"- Moon: {moon.sign} in {ordinal(moon.house)} house, "
            f"{moon.nakshatra or 'Unknown'} nakshatra",
            f"- Active Dasha: {current.mahadasha} - {current.antardasha}",
        ]
    )


def format_context(results: list[SearchResult]) -> str:
    blocks = [
        f"[Source {i} - Similarity: {r.similarity * 100:.1f}%]\n{r.content}"
        for i, r in enumerate(results, start=1)
    ]
    return "\n\n---\n\n".join(blocks)


def build_system_prompt(
    chart: ChartData, results: list[SearchResult], date_mentions: list[str]
) -> str:
    context = format_context(results) or NO_CONTEXT
    date_block = ""
    if date_mentions:
        date_block = f"\n## Date Context\nUser is asking about: {', '.join(date_mentions)}\n"
    return (
        "You are an expert Vedic astrologer assistant. You have access to the birth chart data "
        "and previously generated reports for this person.\n\n"
        f"## Birth Chart Summary\n{chart_summary(chart)}\n\n"
        f"## Retrieved Report Context\n{context}\n"
        f"{date_block}\n"
        "Answer the user's question based on:\n"
        "1. The birth chart data above\n"
        "2. The retrieved report excerpts\n"
        "3. Your knowledge of Vedic astrology principles\n\n"
        "If the query mentions specific dates, provide transit analysis for those dates.\n"
        "Cite your sources when referencing report content.\n"
        "Be conversational but accurate."
    )


def build_sources_metadata(results: list[SearchResult]) -> list[dict[str, Any]]:
    """Citations enregistrées avec la réponse et renvoyées au navigateur."""
    return [
        {
            "report_id": r.report_id,
            "chunk_id": r.id,
            "report_type": r.metadata.get("report_type"),
            "excerpt": r.content[:150] + "...",
            "similarity": r.similarity,
        }
        for r in results
    ]


class ChatOrchestrator:
    """Assemble le prompt contextualisé et ouvre la complétion en streaming."""

    def __init__(self, retriever: Retriever, completions: CompletionProvider, top_k: int = 5):
        self.retriever = retriever
        self.completions = completions
        self.top_k = top_k

    async def generate_chat_response(
        self,
        profile_id: str,
        chart: ChartData,
        query: str,
        history: list[dict[str, str]],
        model: str | None = None,
    ) -> ChatResponse:
        """
        Récupère le contexte puis démarre la complétion.

        La récupération se termine toujours avant l'assemblage du prompt.

        Raises:
            EmbeddingError: si l'embedding de la question échoue.
            ChatAPIError: si la complétion est rejetée avant le début du streaming.
        """
        dates = extract_date_mentions(query)
        results = await self.retriever.search_report_chunks(profile_id, query, self.top_k)
        messages = [
            {"role": "system", "content": build_system_prompt(chart, results, dates)},
            *({"role": m["role"], "content": m["content"]} for m in history),
            {"role": "user", "content": query},
        ]
        chosen = model or self.completions.default_model
        log.info(
            "chat_completion_start",
            profile_id=profile_id,
            sources=len(results),
            history=len(history),
            model=chosen,
        )
        stream = await self.completions.open_stream(messages, model=chosen, title=CHAT_TITLE)
        return ChatResponse(stream=stream, results=results, model=chosen)
