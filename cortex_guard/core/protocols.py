"""Records exchanged between the access plane and its callers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from cortex_guard.core.enums import ApprovalDecision, ChannelId, ClassificationLevel


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Actor(BaseModel):
    """Identity asserted by a channel adapter for the duration of one call."""
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        """Human-facing identity: display name, else email, else id."""
        return self.display_name or self.email or self.id


# ── Approvals ──


class ApprovalRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    requested_by: Actor
    created_at: str = Field(default_factory=utc_now)
    timeout_ms: int
    metadata: Optional[Dict[str, Any]] = None


class ApprovalResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    decision: ApprovalDecision
    decided_by: Optional[Actor] = None
    decided_at: str = Field(default_factory=utc_now)
    reason: Optional[str] = None


# ── Audit ──


class AuditEvent(BaseModel):
    """One line of the audit trail. Never mutated once written."""
    model_config = ConfigDict(frozen=True)

    ts: str = Field(default_factory=utc_now)
    event: str
    actor: Optional[Actor] = None
    channel: Optional[ChannelId] = None
    classification: Optional[ClassificationLevel] = None
    redacted: Optional[bool] = None
    details: Optional[Dict[str, Any]] = None


class RedactionResult(NamedTuple):
    text: str
    changed: bool


# ── Classification ──


class ExternalGatingPolicy(BaseModel):
    max_external_classification: ClassificationLevel = ClassificationLevel.INTERNAL
    mask_pii_before_external: bool = False


class PiiMatch(NamedTuple):
    kind: str
    value: str


class PiiMaskResult(NamedTuple):
    text: str
    masked: bool
    matches: List[PiiMatch]


class GateResult(NamedTuple):
    text: str
    masked: bool
