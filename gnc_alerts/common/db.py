from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Sequence

import sqlalchemy as sa
from alembic import command
from alembic.config import Config
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

_engine_cache: dict[str, AsyncEngine] = {}
_session_factory_cache: dict[str, async_sessionmaker[AsyncSession]] = {}


def _ensure_async_engine(database_url: str) -> AsyncEngine:
    if database_url not in _engine_cache:
        _engine_cache[database_url] = create_async_engine(database_url, future=True)
    return _engine_cache[database_url]


def _ensure_sessionmaker(database_url: str) -> async_sessionmaker[AsyncSession]:
    if database_url not in _session_factory_cache:
        engine = _ensure_async_engine(database_url)
        _session_factory_cache[database_url] = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory_cache[database_url]


@asynccontextmanager
async def session_scope(database_url: str) -> AsyncIterator[AsyncSession]:
    factory = _ensure_sessionmaker(database_url)
    async with factory() as session:
        yield session


async def dispose_engines() -> None:
    for engine in list(_engine_cache.values()):
        await engine.dispose()
    _engine_cache.clear()
    _session_factory_cache.clear()


def is_sqlite_url(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def make_upsert(
    table: sa.Table,
    values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    conflict_cols: Sequence[str],
    use_sqlite: bool,
) -> sa.sql.dml.Insert:
    """Build ``INSERT .. ON CONFLICT DO UPDATE`` touching only the supplied columns."""

    insert_fn = sqlite_insert if use_sqlite else pg_insert
    if isinstance(values, Mapping):
        insert = insert_fn(table).values(**values)
        keys = list(values)
    else:
        insert = insert_fn(table).values(list(values))
        keys = list(values[0]) if values else []
    update_cols = {key: insert.excluded[key] for key in keys if key not in conflict_cols}
    if not update_cols:
        return insert.on_conflict_do_nothing(index_elements=list(conflict_cols))
    return insert.on_conflict_do_update(index_elements=list(conflict_cols), set_=update_cols)


def run_alembic_upgrade(revision: str) -> None:
    alembic_cfg = Config(os.getenv("ALEMBIC_CONFIG", "alembic.ini"))
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        alembic_cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(alembic_cfg, revision)
