from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from .config import load_config


class Base(DeclarativeBase):
    pass


_config = load_config()
_engine = create_engine(
    _config.database_url,
    pool_pre_ping=True,
    pool_recycle=300,  # Serverless invocations outlive Supabase's idle connection reaper
)
SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def upsert(session: Session, model: type[Base], values: dict[str, Any], conflict_columns: Iterable[str]) -> None:
    """INSERT ... ON CONFLICT DO UPDATE for a single row.

    Every supplied column except the conflict key is overwritten on conflict.
    """
    conflict_columns = list(conflict_columns)
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    else:
        raise RuntimeError(f"Upsert is not supported for dialect {dialect!r}")

    update_columns = {
        key: stmt.excluded[key]
        for key in values
        if key not in conflict_columns and key != "id"
    }
    if update_columns:
        stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=update_columns)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
    session.execute(stmt)
