"""
Relais Server-Sent Events entre le fournisseur de complétions et le navigateur.

Le fournisseur émet des trames `data: {"choices":[{"delta":{"content":...}}]}` terminées par
`data: [DONE]`. Le relais les reformate en `data: {"content": ...}` pour le navigateur.

`StreamRelay` sépare la lecture amont (tâche productrice) de l'émission aval (file asyncio): la
tâche productrice continue même si le client se déconnecte, afin que le texte complet soit
persisté.
"""

from __future__ import annotations

import asyncio
import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Coroutine
from typing import Any

import structlog

log = structlog.get_logger(__name__)

SSE_DONE = b"data: [DONE]\n\n"
GENERIC_STREAM_ERROR = "Generation failed, please retry later"

# on_finish(texte complet, erreur éventuelle) -> événements supplémentaires avant [DONE]
FinishCallback = Callable[[str, BaseException | None], Awaitable[list[dict[str, Any]] | None]]
Spawner = Callable[[Coroutine[Any, Any, None]], asyncio.Task]


def sse_event(obj: Any) -> bytes:
    """Trame SSE `data:` contenant l'objet sérialisé en JSON."""
    return f"data: {json.dumps(obj, ensure_ascii=False)}\n\n".encode()


def _data_of(line: str) -> str | None:
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


async def iter_sse_data(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """
    Extrait les charges `data:` d'un flux SSE brut.

    Les trames peuvent être coupées n'importe où (y compris au milieu d'un caractère UTF-8);
    les lignes vides, commentaires et autres champs sont ignorés. S'arrête à `[DONE]`.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        while "\n" in buffer:
            line, buffer = buffer.split("\n", 1)
            data = _data_of(line)
            if data is None or data == "":
                continue
            if data == "[DONE]":
                return
            yield data
    buffer += decoder.decode(b"", final=True)
    data = _data_of(buffer)
    if data and data != "[DONE]":
        yield data


def extract_delta(payload: str) -> str | None:
    """Retourne `choices[0].delta.content`, ou None (JSON invalide ou sans contenu)."""
    try:
        obj = json.loads(payload)
    except ValueError:
        return None
    try:
        content = obj["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) and content else None


class StreamRelay:
    """
    Pipeline producteur/consommateur pour un flux de complétion.

    - La tâche productrice lit l'amont, accumule le texte et pousse un événement `content` par
      delta, puis attend `on_finish(texte, erreur)` (persistance) avant de pousser les
      événements finaux (`error` si l'amont ou `on_finish` échoue, sinon ceux retournés par
      `on_finish`) et `[DONE]`.
    - Le consommateur (`frames()`) ne fait que vider la file.

    `spawn` enregistre la tâche productrice hors du cycle de vie de la requête HTTP.
    """

    def __init__(
        self,
        upstream: Any,
        on_finish: FinishCallback,
        spawn: Spawner | None = None,
        error_message: str = GENERIC_STREAM_ERROR,
        lead_events: list[dict[str, Any]] | None = None,
    ) -> None:
        self.upstream = upstream
        self.on_finish = on_finish
        self.error_message = error_message
        self._spawn = spawn or asyncio.create_task
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        for event in lead_events or []:
            self._queue.put_nowait(sse_event(event))
        self.text = ""

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = self._spawn(self._produce())
        return self._task

    async def _close_upstream(self) -> None:
        close = getattr(self.upstream, "aclose", None)
        if close is None:
            return
        try:
            await close()
        except Exception as exc:
            log.warning("upstream_close_failed", error=type(exc).__name__)

    async def _produce(self) -> None:
        parts: list[str] = []
        error: BaseException | None = None
        try:
            try:
                async for data in iter_sse_data(self.upstream):
                    delta = extract_delta(data)
                    if delta:
                        parts.append(delta)
                        await self._queue.put(sse_event({"content": delta}))
            except Exception as exc:
                error = exc
                log.warning("stream_interrupted", error=type(exc).__name__, received=len(parts))
            finally:
                await self._close_upstream()

            self.text = "".join(parts)
            tail: list[dict[str, Any]] | None = None
            try:
                tail = await self.on_finish(self.text, error)
            except Exception as exc:
                # texte livré mais non persisté: le client doit le savoir
                log.error("stream_finish_failed", error=type(exc).__name__)
                error = error or exc
            if error is not None:
                await self._queue.put(sse_event({"type": "error", "message": self.error_message}))
            else:
                for event in tail or []:
                    await self._queue.put(sse_event(event))
            await self._queue.put(SSE_DONE)
        finally:
            await self._queue.put(None)

    async def frames(self) -> AsyncIterator[bytes]:
        """Trames SSE pour le navigateur; démarre le producteur si nécessaire."""
        self.start()
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame

    async def wait(self) -> None:
        """Attend la fin du producteur (persistance comprise)."""
        if self._task is not None:
            await asyncio.shield(self._task)
