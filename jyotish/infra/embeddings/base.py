"""
Interface de base pour les générateurs d'embeddings.

Ce module définit l'interface abstraite que doivent implémenter tous les générateurs d'embeddings
vectoriels.
"""

from abc import ABC, abstractmethod


class Embeddings(ABC):
    """Interface abstraite pour les générateurs d'embeddings."""

    model: str

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Génère l'embedding d'un texte."""
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Génère les embeddings d'une liste de textes, dans le même ordre, en un seul appel."""
        ...
