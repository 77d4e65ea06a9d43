"""
Module d'authentification et de gestion des tokens.

Hachage des mots de passe (PBKDF2 via passlib) et création/validation des tokens JWT de
session.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr
from pydantic import ValidationError as PydanticValidationError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class TokenData(BaseModel):
    """Données contenues dans un token JWT."""

    sub: str
    email: EmailStr


def hash_password(p: str) -> str:
    """Hache un mot de passe en utilisant PBKDF2."""
    return pwd_context.hash(p)


def verify_password(p: str, h: str) -> bool:
    """Vérifie un mot de passe contre son hash (faux si le hash est vide ou invalide)."""
    if not h:
        return False
    try:
        return pwd_context.verify(p, h)
    except ValueError:
        return False


def create_access_token(
    secret: str, alg: str, expires_min: int, payload: dict[str, Any]
) -> str:
    """Crée un token JWT d'accès avec expiration."""
    to_encode = payload.copy()
    expire = datetime.now(UTC) + timedelta(minutes=expires_min)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=alg)


def decode_token(token: str, secret: str, alg: str) -> TokenData | None:
    """Décode et valide un token JWT; None si signature, expiration ou contenu invalides."""
    try:
        data = jwt.decode(token, secret, algorithms=[alg])
        return TokenData(**data)
    except (InvalidTokenError, PydanticValidationError):
        return None
