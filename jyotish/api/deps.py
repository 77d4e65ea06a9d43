"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Exposer le conteneur de l'application (posé sur `app.state` par le lifespan).
- Authentifier l'appelant à partir du jeton `Authorization: Bearer ...`.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from jyotish.core.container import Container
from jyotish.domain.auth import decode_token
from jyotish.domain.entities import User
from jyotish.domain.errors import AuthError


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_current_user(
    authorization: str | None = Header(None),
    container: Container = Depends(get_container),
) -> User:
    """Extrait et valide l'utilisateur courant à partir du token d'autorisation."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    settings = container.settings
    data = decode_token(token, settings.JWT_SECRET, settings.JWT_ALG)
    if data is None:
        raise AuthError("Invalid or expired token")
    user = await container.users.get(data.sub)
    if user is None:
        raise AuthError("Unknown user")
    return user
