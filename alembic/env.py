"""
Configuration de l'environnement Alembic pour les migrations de base de données.

L'URL vient de `DATABASE_URL` (même variable que l'application, driver asynchrone compris): en
mode online, les migrations passent par un moteur asynchrone et `run_sync`.
"""

from __future__ import annotations

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context  # type: ignore[attr-defined]
from jyotish.infra.repo.models import Base

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./jyotish.db")


def run_migrations_offline() -> None:
    """
    Exécute les migrations Alembic en mode offline.

    Configure Alembic pour exécuter les migrations sans connexion à la base de données en utilisant
    des bindings littéraux.
    """
    context.configure(url=database_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def _run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """
    Exécute les migrations Alembic en mode online.

    Ouvre une connexion asynchrone et délègue les opérations synchrones d'Alembic à `run_sync`.
    """
    connectable = create_async_engine(database_url(), poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
