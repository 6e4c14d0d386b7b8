"""
Dialect-specific INSERT constructs.

Both PostgreSQL and SQLite support ``ON CONFLICT`` clauses, but SQLAlchemy
exposes them through each dialect's own ``insert``.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

def dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name

def upsert_insert(db: AsyncSession, model):
    """Core ``insert`` on the model's table supporting ``ON CONFLICT``.

    Built against the Table rather than the mapped class so the result
    reports a plain ``rowcount``.
    """
    table = getattr(model, "__table__", model)
    name = dialect_name(db)
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported on {name}")
