"""Exceptions raised by the access plane."""

from __future__ import annotations


class CortexGuardError(Exception):
    """Base class for access plane errors."""


class PermissionDenied(CortexGuardError):
    """The actor holds no role granting the requested permission."""

    def __init__(self, actor_label: str, permission: str) -> None:
        self.actor_label = actor_label
        self.permission = permission
        super().__init__(f"Permission denied: {actor_label} lacks {permission}")


class ClassificationBlocked(CortexGuardError):
    """Data is too sensitive to leave the trust boundary."""

    def __init__(self, classification: str, ceiling: str) -> None:
        self.classification = classification
        self.ceiling = ceiling
        super().__init__(
            f"External LLM blocked for classification={classification}; max={ceiling}"
        )
