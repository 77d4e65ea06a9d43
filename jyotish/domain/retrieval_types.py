"""
Types de données pour le pipeline de récupération (RAG) des rapports.

Ce module définit les segments produits par le découpeur, les enregistrements persistés avec leur
embedding et les résultats classés renvoyés par la recherche hybride.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Chunk(BaseModel):
    """
    Segment de rapport borné en taille.

    Représente un extrait de rapport avec son index (0-based) et ses métadonnées
    (`report_type`, `section_title`).
    """

    content: str
    index: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkRecord(BaseModel):
    """Segment prêt à être stocké: contenu, vecteur et rattachement rapport/profil."""

    report_id: str
    profile_id: str
    chunk_index: int
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """
    Segment trouvé par la recherche hybride.

    `similarity` est la similarité cosinus, `text_rank` la pertinence mot-clé et
    `combined_score` le score pondéré qui ordonne les résultats.
    """

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    report_id: str
    similarity: float
    text_rank: float = 0.0
    combined_score: float = 0.0
