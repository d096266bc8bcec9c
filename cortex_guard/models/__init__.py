"""Table definitions for the structured audit sink."""

from cortex_guard.models.audit_record import audit_table

__all__ = ["audit_table"]
