"""
Génération des rapports narratifs et indexation pour la recherche.

Le générateur choisit le gabarit du type demandé, ouvre une complétion en streaming et, une fois
le texte complet connu (côté appelant), le découpe, l'embarque et stocke ses segments.
"""

from __future__ import annotations

import structlog

from jyotish.domain.chart import ChartData
from jyotish.domain.chunker import chunk_text
from jyotish.domain.report_prompts import render_report_prompt
from jyotish.domain.retrieval_types import ChunkRecord
from jyotish.infra.embeddings.base import Embeddings
from jyotish.infra.llm.base import CompletionProvider, CompletionStream
from jyotish.infra.repo.chunk_store import ChunkStore

log = structlog.get_logger(__name__)

REPORT_TITLE = "JyotishAI"


def system_instruction(language: str) -> str:
    lang = "Respond in Hindi." if language == "hi" else "Respond in English."
    return (
        "You are an expert Vedic astrologer. Generate detailed, insightful horoscope reports "
        f"based on birth chart data. {lang}"
    )


def build_report_messages(
    report_type: str, chart: ChartData, language: str, year: int | None = None
) -> list[dict[str, str]]:
    """Messages `[system, user]` de la complétion."""
    return [
        {"role": "system", "content": system_instruction(language)},
        {"role": "user", "content": render_report_prompt(report_type, chart, language, year)},
    ]


class ReportGenerator:
    """Complétion en streaming des rapports et pipeline découpage -> embedding -> stockage."""

    def __init__(
        self, completions: CompletionProvider, embedder: Embeddings, store: ChunkStore
    ) -> None:
        self.completions = completions
        self.embedder = embedder
        self.store = store

    async def generate_streaming_report(
        self,
        report_type: str,
        language: str,
        chart: ChartData,
        model: str | None = None,
        year: int | None = None,
    ) -> CompletionStream:
        """
        Démarre la génération du rapport.

        Raises:
            ValidationError: type de rapport inconnu.
            ChatAPIError: complétion rejetée avant le début du streaming.
        """
        messages = build_report_messages(report_type, chart, language, year)
        return await self.completions.open_stream(messages, model=model, title=REPORT_TITLE)

    async def index_report(
        self, report_id: str, profile_id: str, report_type: str, content: str
    ) -> int:
        """
        Découpe le rapport, embarque tous les segments en un appel et les stocke en une fois.

        Raises:
            EmbeddingError: si le lot d'embeddings échoue (rien n'est stocké).
            PersistenceError: si l'insertion échoue (rien n'est stocké).
        """
        chunks = chunk_text(content, report_type)
        vectors = await self.embedder.embed_batch([c.content for c in chunks])
        records = [
            ChunkRecord(
                report_id=report_id,
                profile_id=profile_id,
                chunk_index=chunk.index,
                content=chunk.content,
                embedding=vector,
                metadata=chunk.metadata,
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]
        return await self.store.insert_chunks(records)
