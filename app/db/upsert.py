"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_statement(db: AsyncSession, model, values: dict, conflict_columns: list, update_columns: list):
    """
    Build a single-statement upsert keyed by a unique constraint's columns.
    On conflict the update_columns are overwritten with the incoming values.
    """
    dialect = db.get_bind().dialect.name
    insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
    stmt = insert(model).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={col: getattr(stmt.excluded, col) for col in update_columns},
    ).returning(model.id)
