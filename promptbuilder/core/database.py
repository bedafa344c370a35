"""
Prompt Builder Backend — Database
Async SQLAlchemy engine, session dependency and dialect-aware upserts.
"""
import logging
from typing import Any, AsyncIterator, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from promptbuilder.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite connections are cheap; pooling them across event loops is not safe
        return {"echo": settings.DEBUG, "poolclass": NullPool}
    return {"echo": settings.DEBUG, "pool_pre_ping": True}


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session per request; commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def upsert(
    db: AsyncSession,
    model,
    values: dict,
    index_elements: Iterable[str],
    update_columns: Optional[Iterable[str]] = None,
    where: Any = None,
    set_overrides: Any = None,
):
    """
    Build an INSERT .. ON CONFLICT DO UPDATE for the session's dialect.

    `update_columns` defaults to every value that is not part of the conflict
    target. `where` may be a callable taking the insert statement and returning
    a clause, so it can reference `stmt.excluded`. `set_overrides` works the same
    way and returns column expressions that replace the plain excluded values.
    """
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")

    index_elements = list(index_elements)
    if update_columns is None:
        update_columns = [k for k in values if k not in index_elements]

    stmt = insert(model).values(**values)
    set_ = {col: stmt.excluded[col] for col in update_columns}
    if set_overrides is not None:
        set_.update(set_overrides(stmt))
    return stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_=set_,
        where=where(stmt) if callable(where) else where,
    )
