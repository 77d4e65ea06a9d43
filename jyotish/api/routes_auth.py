"""
Routes d'authentification pour l'API.

Inscription et connexion; la connexion retourne un jeton JWT à présenter en
`Authorization: Bearer <token>` sur les routes `/api/v1`.
"""

from fastapi import APIRouter, Depends

from jyotish.api.deps import get_container
from jyotish.api.schemas import LoginPayload, SignupPayload
from jyotish.core.container import Container
from jyotish.core.http_constants import HTTP_CREATED
from jyotish.domain.auth import create_access_token, hash_password, verify_password
from jyotish.domain.errors import AuthError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=HTTP_CREATED)
async def signup(p: SignupPayload, container: Container = Depends(get_container)):
    """Inscrit un nouvel utilisateur (409 si l'email existe déjà)."""
    user = await container.users.create(str(p.email), hash_password(p.password))
    return {"id": user.id, "email": user.email}


@router.post("/login")
async def login(p: LoginPayload, container: Container = Depends(get_container)):
    """Authentifie un utilisateur et retourne un token d'accès."""
    user = await container.users.get_by_email(str(p.email))
    if not user or not verify_password(p.password, user.password_hash):
        raise AuthError("Invalid credentials")
    settings = container.settings
    token = create_access_token(
        secret=settings.JWT_SECRET,
        alg=settings.JWT_ALG,
        expires_min=settings.JWT_EXPIRES_MIN,
        payload={"sub": user.id, "email": user.email},
    )
    return {"access_token": token, "token_type": "bearer"}
