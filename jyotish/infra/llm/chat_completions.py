"""
Client de complétion de chat en streaming (API compatible OpenAI).

Envoie `POST /chat/completions` avec `stream: true` et renvoie le corps `text/event-stream`
tel quel: le relais ne met pas la complétion en tampon.
"""

from __future__ import annotations

import httpx
import structlog

from jyotish.domain.errors import ChatAPIError
from jyotish.infra.llm.base import CompletionProvider, CompletionStream

log = structlog.get_logger(__name__)

ENDPOINT = "/chat/completions"


class ChatCompletionsClient(CompletionProvider):
    """
    Fournisseur de complétions basé sur httpx.

    Le client httpx est injecté et son cycle de vie appartient au conteneur.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str | None,
        default_model: str,
        referer: str = "http://localhost:3000",
        title: str = "JyotishAI",
    ) -> None:
        """Initialise le client avec le pool HTTP partagé et l'identité de l'application."""
        self.http = http
        self.default_model = default_model
        self._headers = {
            "Authorization": f"Bearer {api_key or ''}",
            "Content-Type": "application/json",
            "HTTP-Referer": referer,
            "X-Title": title,
        }

    async def open_stream(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        title: str | None = None,
    ) -> CompletionStream:
        """
        Démarre la complétion et retourne le flux SSE brut.

        Args:
            messages: Messages `[system, ...historique, user]`.
            model: Modèle demandé, sinon le modèle par défaut.
            title: En-tête `X-Title` propre à l'appel (sinon celui du client).

        Raises:
            ChatAPIError: si la requête échoue ou renvoie un statut non 2xx.
        """
        chosen = model or self.default_model
        request = self.http.build_request(
            "POST",
            ENDPOINT.lstrip("/"),
            json={"model": chosen, "messages": messages, "stream": True},
            headers={**self._headers, "X-Title": title} if title else self._headers,
        )
        try:
            response = await self.http.send(request, stream=True)
        except httpx.HTTPError as exc:
            log.warning("chat_completion_transport_failed", error=type(exc).__name__)
            raise ChatAPIError("chat completion request failed", endpoint=ENDPOINT) from exc

        if not response.is_success:
            await response.aread()
            await response.aclose()
            log.warning("chat_completion_rejected", status=response.status_code, model=chosen)
            raise ChatAPIError(
                f"chat completion rejected: {response.reason_phrase}",
                status=response.status_code,
                endpoint=ENDPOINT,
            )
        return CompletionStream(response.aiter_bytes(), close=response.aclose, model=chosen)
