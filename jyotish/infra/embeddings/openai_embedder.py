"""
Embedder OpenAI pour la génération d'embeddings.

Ce module implémente un embedder utilisant le SDK OpenAI contre un fournisseur compatible
(OpenRouter par défaut). Un appel réseau par invocation; aucune relance automatique à ce niveau,
la politique de retry appartient à l'appelant.
"""

from __future__ import annotations

import time

import httpx
import openai
import structlog
from openai import AsyncOpenAI

from jyotish.app.metrics import EMBEDDING_LATENCY
from jyotish.domain.errors import EmbeddingError
from jyotish.infra.embeddings.base import Embeddings

log = structlog.get_logger(__name__)

ENDPOINT = "/embeddings"


class OpenAIEmbedder(Embeddings):
    """
    Embedder OpenAI pour la génération d'embeddings.

    Utilise `AsyncOpenAI` avec un modèle fixe. Les échecs du fournisseur sont convertis en
    `EmbeddingError` portant le statut et l'endpoint.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        model: str = "openai/text-embedding-3-small",
        http_client: httpx.AsyncClient | None = None,
        referer: str | None = None,
        title: str = "JyotishAI",
    ) -> None:
        """
        Initialise l'embedder.

        Args:
            api_key: Clé du fournisseur.
            base_url: URL de base de l'API compatible OpenAI.
            model: Identifiant du modèle d'embedding.
            http_client: Client httpx injecté (tests, pool partagé).
            referer: En-tête `HTTP-Referer` attendu par OpenRouter (URL publique de l'app).
            title: En-tête `X-Title`.
        """
        self.model = model
        headers = {"X-Title": title}
        if referer:
            headers["HTTP-Referer"] = referer
        self.client = AsyncOpenAI(
            api_key=api_key or "missing-key",
            base_url=base_url,
            max_retries=0,
            http_client=http_client,
            default_headers=headers,
        )

    async def embed(self, text: str) -> list[float]:
        """
        Génère l'embedding d'un texte unique.

        Raises:
            EmbeddingError: si le fournisseur répond en erreur ou ne renvoie pas de vecteur.
        """
        vectors = await self._create(text, expected=1)
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Génère les embeddings d'un lot en une seule requête.

        Le lot est atomique: si le fournisseur ne renvoie pas exactement un vecteur par texte,
        aucune liste partielle n'est retournée.

        Raises:
            EmbeddingError: en cas d'échec ou de réponse incomplète.
        """
        if not texts:
            return []
        return await self._create(texts, expected=len(texts))

    async def _create(self, payload: str | list[str], expected: int) -> list[list[float]]:
        start = time.perf_counter()
        try:
            resp = await self.client.embeddings.create(model=self.model, input=payload)
        except openai.APIStatusError as exc:
            log.warning("embedding_failed", status=exc.status_code, model=self.model)
            raise EmbeddingError(
                "embedding request rejected", status=exc.status_code, endpoint=ENDPOINT
            ) from exc
        except openai.APIError as exc:
            log.warning("embedding_transport_failed", error=type(exc).__name__)
            raise EmbeddingError("embedding request failed", endpoint=ENDPOINT) from exc
        finally:
            EMBEDDING_LATENCY.observe(time.perf_counter() - start)

        data = sorted(resp.data or [], key=lambda d: getattr(d, "index", 0) or 0)
        if len(data) != expected:
            raise EmbeddingError(
                f"embedding count mismatch: expected {expected}, got {len(data)}",
                status=200,
                endpoint=ENDPOINT,
            )
        return [list(d.embedding) for d in data]
