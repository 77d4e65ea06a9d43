"""Routes du chat contextualisé.

Ce module expose le chat en streaming SSE (récupération des extraits de rapports du profil puis
complétion), ainsi que la consultation des sessions et de leur historique.
"""

from __future__ import annotations

import asyncio

import structlog
import tiktoken
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from jyotish.api.deps import get_container, get_current_user
from jyotish.api.schemas import ChatRequest
from jyotish.app.metrics import CHAT_REQUESTS, LLM_TOKENS_TOTAL, labelize_model
from jyotish.core.container import Container
from jyotish.core.http_constants import SSE_HEADERS
from jyotish.domain.chat_orchestrator import build_sources_metadata
from jyotish.domain.entities import User
from jyotish.domain.errors import ForbiddenError, NotFoundError
from jyotish.domain.sse import StreamRelay

log = structlog.get_logger(__name__)

DEFAULT_MODEL_ENCODING = "cl100k_base"


def estimate_tokens(text: str, model: str | None, strategy: str = "auto") -> int:
    """Estimate tokens using configured strategy: auto|tiktoken|words.

    Never logs text; only counts. Falls back to a word count.
    """
    strategy = (strategy or "auto").lower()

    def _from_tiktoken() -> int | None:
        try:
            try:
                enc = tiktoken.encoding_for_model(model) if model else None
            except KeyError:
                enc = None
            enc = enc or tiktoken.get_encoding(DEFAULT_MODEL_ENCODING)
            return len(enc.encode(text or ""))
        except Exception:
            return None

    def _from_words() -> int:
        return max(0, len((text or "").split()))

    if strategy == "words":
        return _from_words()
    return _from_tiktoken() or _from_words()


router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    """
    Répond en streaming à une question sur le thème d'un profil.

    La session est créée à la fin du premier échange si aucune n'est fournie; une session d'un
    autre profil est refusée (403).
    """
    profile = await container.profiles.get(user.id, payload.profileId)
    chart = profile.chart()
    if chart is None:
        raise NotFoundError("Chart not calculated for this profile")

    session_id = payload.sessionId
    history: list[dict[str, str]] = []
    if session_id:
        chat_session = await container.chats.get_session(session_id)
        if chat_session is None:
            raise NotFoundError("Chat session not found")
        if chat_session.profile_id != profile.id:
            raise ForbiddenError("Chat session belongs to another profile")
        messages = await container.chats.recent_history(
            session_id, container.settings.CHAT_HISTORY_LIMIT
        )
        history = [{"role": m.role, "content": m.content} for m in messages]

    response = await container.chat.generate_chat_response(
        profile.id, chart, payload.message, history, model=payload.model
    )
    sources = build_sources_metadata(response.results)
    settings = container.settings
    model_label = labelize_model(response.model, settings.ALLOWED_LLM_MODELS)

    async def on_finish(text: str, error: BaseException | None) -> list[dict]:
        nonlocal session_id
        CHAT_REQUESTS.labels(model=model_label).inc()
        # tiktoken est synchrone (et peut télécharger son encodage au premier appel)
        tokens = await asyncio.to_thread(
            estimate_tokens, text, response.model, settings.TOKEN_COUNT_STRATEGY
        )
        LLM_TOKENS_TOTAL.labels(model=model_label, kind="completion").inc(tokens)
        if error is not None and not text:
            return []
        if session_id is None:
            created = await container.chats.create_session(profile.id, payload.message)
            session_id = created.id
        await container.chats.append_exchange(
            session_id, payload.message, text, sources, response.model
        )
        log.info(
            "chat_exchange_saved",
            session_id=session_id,
            sources=len(sources),
            partial=error is not None,
        )
        return [{"sources": sources, "sessionId": session_id}]

    relay = StreamRelay(response.stream, on_finish, spawn=container.spawn)
    relay.start()
    return StreamingResponse(
        relay.frames(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.get("/profiles/{profile_id}/chat/sessions")
async def list_chat_sessions(
    profile_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    await container.profiles.get(user.id, profile_id)
    sessions = await container.chats.list_sessions(user.id, profile_id)
    return [s.model_dump(mode="json") for s in sessions]


@router.get("/chat/sessions/{session_id}/messages")
async def list_chat_messages(
    session_id: str,
    user: User = Depends(get_current_user),
    container: Container = Depends(get_container),
):
    messages = await container.chats.list_messages(user.id, session_id)
    return [m.model_dump(mode="json") for m in messages]
