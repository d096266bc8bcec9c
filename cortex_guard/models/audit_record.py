"""Audit record table — the SQL mirror of the JSONL trail.

The table name is configurable, so the table is built per name as a Core
``Table`` on the shared metadata rather than as a mapped class.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, JSON, String, Table

from cortex_guard.database import Base


def audit_table(name: str = "audit_log") -> Table:
    """Return the audit table called *name*, defining it on first use."""
    existing = Base.metadata.tables.get(name)
    if existing is not None:
        return existing
    return Table(
        name,
        Base.metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("ts", String(40), nullable=False),
        Column("event", String(200), nullable=False),
        Column("actor", JSON, nullable=True),
        Column("channel", String(20), nullable=True),
        Column("classification", String(20), nullable=True),
        Column("redacted", Boolean, nullable=False, default=False),
        Column("details", JSON, nullable=True),
    )
