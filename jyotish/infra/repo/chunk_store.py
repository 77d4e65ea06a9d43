"""
Stockage SQL des segments de rapports et recherche hybride.

Les embeddings sont stockés en JSON; le classement (cosinus numpy + pertinence mot-clé) est
calculé en mémoire sur les seuls segments du profil demandé.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

import numpy as np
import structlog
from sqlalchemy import select

from jyotish.app.metrics import CHUNKS_INDEXED_TOTAL
from jyotish.domain.retrieval_types import ChunkRecord, SearchResult
from jyotish.infra.repo.db import session_scope
from jyotish.infra.repo.models import ReportChunkORM
from jyotish.infra.repo.repositories import SessionFactory

log = structlog.get_logger(__name__)

_TERM_RE = re.compile(r"[^\W_]{3,}")


def query_terms(text: str) -> set[str]:
    """Termes distincts (alphanumériques, >= 3 caractères, casse ignorée)."""
    return {t.casefold() for t in _TERM_RE.findall(text or "")}


def text_rank(terms: set[str], content: str) -> float:
    """Fraction des termes de la requête présents dans le contenu."""
    if not terms:
        return 0.0
    present = query_terms(content)
    return len(terms & present) / len(terms)


def cosine_similarities(query: list[float], matrix: np.ndarray) -> np.ndarray:
    """Similarités cosinus entre la requête et chaque ligne de `matrix` (0 si norme nulle)."""
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    norms = np.linalg.norm(matrix, axis=1)
    denom = norms * q_norm
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, dots / denom, 0.0)
    return sims


class ChunkStore(ABC):
    """Interface abstraite du stockage de segments."""

    @abstractmethod
    async def insert_chunks(self, chunks: list[ChunkRecord]) -> int:
        """Insère tous les segments en une opération; rien n'est stocké en cas d'échec."""
        raise NotImplementedError

    @abstractmethod
    async def search(
        self, profile_id: str, query_embedding: list[float], query_text: str, limit: int
    ) -> list[SearchResult]:
        """Recherche hybride restreinte au profil."""
        raise NotImplementedError


class SQLChunkStore(ChunkStore):
    """Implémentation SQLAlchemy, isolation stricte par `profile_id`."""

    def __init__(self, sessions: SessionFactory, vector_weight: float = 0.7) -> None:
        self._sessions = sessions
        self.vector_weight = min(1.0, max(0.0, vector_weight))

    async def insert_chunks(self, chunks: list[ChunkRecord]) -> int:
        if not chunks:
            return 0
        async with session_scope(self._sessions) as session:
            session.add_all(
                [
                    ReportChunkORM(
                        report_id=c.report_id,
                        profile_id=c.profile_id,
                        chunk_index=c.chunk_index,
                        content=c.content,
                        embedding=list(c.embedding),
                        chunk_metadata=dict(c.metadata),
                    )
                    for c in chunks
                ]
            )
        report_type = str(chunks[0].metadata.get("report_type", "unknown"))
        CHUNKS_INDEXED_TOTAL.labels(report_type=report_type).inc(len(chunks))
        log.info("chunks_indexed", report_id=chunks[0].report_id, count=len(chunks))
        return len(chunks)

    async def search(
        self, profile_id: str, query_embedding: list[float], query_text: str, limit: int
    ) -> list[SearchResult]:
        """
        Classe les segments du profil par score combiné.

        `combined = w * similarité + (1 - w) * text_rank`; égalités départagées par
        `(report_id, chunk_index, id)` pour un résultat déterministe.
        """
        if limit <= 0:
            return []
        async with session_scope(self._sessions) as session:
            stmt = select(ReportChunkORM).where(ReportChunkORM.profile_id == profile_id)
            rows = (await session.execute(stmt)).scalars().all()
        if not rows:
            return []

        dim = len(query_embedding)
        usable = [r for r in rows if len(r.embedding or []) == dim]
        if len(usable) != len(rows):
            log.warning(
                "chunk_embedding_dim_mismatch",
                profile_id=profile_id,
                skipped=len(rows) - len(usable),
            )
        if not usable:
            return []

        matrix = np.asarray([r.embedding for r in usable], dtype=np.float64)
        sims = cosine_similarities(query_embedding, matrix)
        terms = query_terms(query_text)
        w = self.vector_weight

        scored = []
        for row, sim in zip(usable, sims.tolist(), strict=True):
            rank = text_rank(terms, row.content)
            combined = w * sim + (1.0 - w) * rank
            scored.append((combined, sim, rank, row))
        scored.sort(key=lambda s: (-s[0], s[3].report_id, s[3].chunk_index, s[3].id))

        results = [
            SearchResult(
                id=row.id,
                content=row.content,
                metadata=dict(row.chunk_metadata or {}),
                report_id=row.report_id,
                similarity=float(sim),
                text_rank=float(rank),
                combined_score=float(combined),
            )
            for combined, sim, rank, row in scored[:limit]
        ]
        return results
