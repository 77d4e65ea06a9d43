"""Utilitaires de base de données (moteur et sessions SQLAlchemy asynchrones).

Le moteur est construit par le conteneur à partir de `DATABASE_URL`; `sqlite+aiosqlite` en
développement et en tests, `postgresql+asyncpg` en production.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from jyotish.domain.errors import PersistenceError


def get_engine(url: str) -> AsyncEngine:
    """Crée un moteur SQLAlchemy asynchrone à partir de l'URL de base de données."""
    kwargs: dict = {"future": True, "echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # une seule connexion partagée, sinon chaque session voit une base vide
            kwargs["poolclass"] = StaticPool
    engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    # SQLite ignore ON DELETE CASCADE sans ce pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Crée une factory de sessions asynchrones."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Contexte de session avec gestion automatique des transactions.

    Commit en sortie normale, rollback puis propagation en cas d'erreur. Les erreurs
    SQLAlchemy sont converties en `PersistenceError`.
    """
    session = factory()
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise PersistenceError(f"database operation failed: {type(exc).__name__}") from exc
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
