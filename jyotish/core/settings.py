"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "jyotish-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    APP_PUBLIC_URL: str = "http://localhost:3000"

    DATABASE_URL: str = "sqlite+aiosqlite:///./jyotish.db"
    # Création des tables au démarrage (dev/tests); en prod: alembic upgrade head
    DB_AUTO_CREATE: bool = True

    # JWT/Auth
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALG: str = "HS256"
    JWT_EXPIRES_MIN: int = 60

    # Fournisseur compatible OpenAI (chat + embeddings)
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_API_KEY: str | None = None
    LLM_DEFAULT_MODEL: str = "anthropic/claude-sonnet-4-5"
    LLM_TIMEOUT_SECONDS: float = 120.0
    EMBEDDINGS_MODEL: str = "openai/text-embedding-3-small"

    # Moteur astrologique externe
    ASTRO_ENGINE_URL: str = "http://localhost:8000"
    ASTRO_ENGINE_TIMEOUT_SECONDS: float = 30.0

    PDF_STORAGE_DIR: str = "./var/pdf"

    # Jobs: "celery" | "inline"
    JOBS_BACKEND: str = "celery"
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"

    # Alertes de transit
    ALERT_MAX_ORB: float = 2.0
    ALERT_SCAN_HOUR: int = 6

    # RAG
    CHAT_HISTORY_LIMIT: int = 10
    RETRIEVAL_TOP_K: int = 5
    HYBRID_VECTOR_WEIGHT: float = 0.7

    # Limitation de cardinalité des labels métriques (CSV via .env, peut être vide)
    ALLOWED_LLM_MODELS: Annotated[list[str], NoDecode] = []
    # Estimation des tokens: auto | tiktoken | words
    TOKEN_COUNT_STRATEGY: str = "auto"

    @field_validator("ALLOWED_LLM_MODELS", mode="before")
    @classmethod
    def split_csv(cls, v):
        """Accepte `a/b,c/d` (env) aussi bien qu'une liste."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
