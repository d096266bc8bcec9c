"""SQLite engine and metadata for the structured audit sink."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from cortex_guard.config import get_config


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        cfg = get_config()
        db_path = Path(cfg.database.path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(f"sqlite:///{db_path}", echo=False)
        # Enable WAL mode for better concurrent reads
        @event.listens_for(_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()
    return _engine


def init_db() -> None:
    """Create the configured audit table."""
    from cortex_guard.models.audit_record import audit_table

    table = audit_table(get_config().audit.table)
    table.create(get_engine(), checkfirst=True)


def reset_db() -> None:
    """Dispose the engine (for testing)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
