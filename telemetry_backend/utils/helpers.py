from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def is_sqlite(session: AsyncSession) -> bool:
    db_url = str(session.bind.url) if session.bind else ""
    return "sqlite" in db_url.lower()


def dialect_insert(session: AsyncSession, model):
    """
    Dialect-specific INSERT supporting ON CONFLICT clauses.

    PostgreSQL in production, SQLite in tests.
    """
    if is_sqlite(session):
        return sqlite.insert(model)
    return postgresql.insert(model)
