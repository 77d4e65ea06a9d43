"""Interface de base pour les fournisseurs de complétion en streaming."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable


class CompletionStream:
    """Flux brut d'octets SSE renvoyé par le fournisseur.

    Le consommateur itère les octets puis appelle `aclose()` (ou utilise `async with`) pour
    libérer la connexion amont.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        close: Callable[[], Awaitable[None]] | None = None,
        model: str | None = None,
    ) -> None:
        self._chunks = chunks
        self._close = close
        self._closed = False
        self.model = model

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            await self._close()

    async def __aenter__(self) -> CompletionStream:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class CompletionProvider(ABC):
    """Interface abstraite pour les API de complétion de chat (compatibles OpenAI)."""

    default_model: str

    @abstractmethod
    async def open_stream(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        title: str | None = None,
    ) -> CompletionStream:
        """Démarre une complétion en streaming et retourne le flux brut.

        Lève `ChatAPIError` si la requête est rejetée avant tout streaming.
        """
        ...
