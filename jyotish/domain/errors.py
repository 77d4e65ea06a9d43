"""Taxonomie des erreurs métier.

Chaque erreur porte un statut HTTP, un code stable et un message présentable au client. Les
erreurs amont (moteur astro, embeddings, complétions) gardent le statut et l'endpoint pour que
l'appelant distingue un échec transitoire d'un échec permanent; leur message public reste
générique.
"""

from __future__ import annotations

from typing import Any

from jyotish.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
)


class JyotishError(Exception):
    """Erreur de base de l'application."""

    status_code: int = HTTP_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(JyotishError):
    status_code = HTTP_BAD_REQUEST
    code = "VALIDATION_ERROR"


class AuthError(JyotishError):
    status_code = HTTP_UNAUTHORIZED
    code = "UNAUTHORIZED"


class ForbiddenError(JyotishError):
    status_code = HTTP_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(JyotishError):
    """Ressource absente ou non possédée par l'appelant (volontairement indiscernables)."""

    status_code = HTTP_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(JyotishError):
    """Ressource déjà existante (ex: email déjà inscrit)."""

    status_code = HTTP_CONFLICT
    code = "CONFLICT"


class PersistenceError(JyotishError):
    code = "PERSISTENCE_ERROR"

    @property
    def public_message(self) -> str:
        return "Storage operation failed"


class UpstreamError(JyotishError):
    """Échec d'un collaborateur externe (moteur astro, embeddings, complétions)."""

    code = "UPSTREAM_ERROR"
    service = "upstream"

    def __init__(self, message: str, status: int | None = None, endpoint: str | None = None):
        super().__init__(message, details=None)
        self.status = status
        self.endpoint = endpoint

    @property
    def transient(self) -> bool:
        """Vrai pour les erreurs réseau, 429 et 5xx (ré-essayables par l'appelant)."""
        if self.status is None:
            return True
        return self.status == HTTP_TOO_MANY_REQUESTS or self.status >= HTTP_INTERNAL_SERVER_ERROR

    @property
    def public_message(self) -> str:
        return f"The {self.service} service is unavailable, please retry later"

    def __str__(self) -> str:
        return f"{self.message} (status={self.status}, endpoint={self.endpoint})"


class EmbeddingError(UpstreamError):
    service = "embedding"


class ChatAPIError(UpstreamError):
    service = "chat completion"


class AstroEngineError(UpstreamError):
    service = "astrology engine"
