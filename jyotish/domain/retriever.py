"""
Récupération des segments de rapports pour le chat (RAG).

Recherche hybride (vecteur + mots-clés) toujours restreinte au profil autorisé.
"""

from __future__ import annotations

import re
import time

import structlog

from jyotish.app.metrics import RETRIEVAL_HITS_TOTAL, RETRIEVAL_LATENCY, RETRIEVAL_QUERIES_TOTAL
from jyotish.domain.retrieval_types import SearchResult
from jyotish.infra.embeddings.base import Embeddings
from jyotish.infra.repo.chunk_store import ChunkStore

log = structlog.get_logger(__name__)

_MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*"
DATE_PATTERNS = (
    re.compile(rf"\b{_MONTHS}\s+\d{{1,2}}(?:-\d{{1,2}})?\b", re.IGNORECASE),
    re.compile(rf"\b\d{{1,2}}\s+{_MONTHS}\b", re.IGNORECASE),
    re.compile(r"\b\d{4}\b"),
)


def extract_date_mentions(query: str) -> list[str]:
    """
    Repère les mentions de dates dans une question ("Feb 25", "25 March", "2026").

    Indicatif seulement: faux positifs et faux négatifs sont acceptables.
    """
    found: list[str] = []
    for pattern in DATE_PATTERNS:
        found.extend(m.group(0) for m in pattern.finditer(query or ""))
    return found


class Retriever:
    """Embedding de la question puis recherche hybride dans le stockage de segments."""

    def __init__(self, embedder: Embeddings, store: ChunkStore) -> None:
        self.embedder = embedder
        self.store = store

    async def search_report_chunks(
        self, profile_id: str, query: str, limit: int = 5
    ) -> list[SearchResult]:
        """
        Retourne au plus `limit` segments du profil, classés par score combiné.

        Une liste vide (et non une erreur) si le profil n'a encore aucun rapport indexé.

        Raises:
            EmbeddingError: si l'embedding de la question échoue.
        """
        start = time.perf_counter()
        RETRIEVAL_QUERIES_TOTAL.inc()
        query_embedding = await self.embedder.embed(query)
        results = await self.store.search(profile_id, query_embedding, query, limit)
        RETRIEVAL_LATENCY.observe(time.perf_counter() - start)
        if results:
            RETRIEVAL_HITS_TOTAL.inc()
        log.info("retrieval_done", profile_id=profile_id, hits=len(results), limit=limit)
        return results
