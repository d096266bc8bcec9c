"""AccessPlane — wires the kernel components into one audited request path.

The components stay independent of each other; this is the one place that
composes them the way a channel adapter needs:

- authorize(): permission check, audited either way
- gate_outbound(): classification gate before an external call, audited
- request_approval(): create, render, await and audit a human sign-off
- decide(): permission-checked decision callback
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from cortex_guard.config import AppConfig, get_config
from cortex_guard.core.enums import (
    ApprovalDecision,
    ChannelId,
    ClassificationLevel,
    Permission,
)
from cortex_guard.core.errors import ClassificationBlocked, PermissionDenied
from cortex_guard.core.protocols import (
    Actor,
    ApprovalRequest,
    ApprovalResult,
    AuditEvent,
    ExternalGatingPolicy,
    GateResult,
)
from cortex_guard.kernel.approval_blocks import build_approval_blocks
from cortex_guard.kernel.approval_manager import ApprovalManager
from cortex_guard.kernel.audit_logger import AuditLogger
from cortex_guard.kernel.classification import gate_external_llm, mask_pii
from cortex_guard.kernel.rbac import assert_permission

TIMEOUT_MESSAGE = "no decision within the window"

OnCreated = Callable[[ApprovalRequest, List[Dict[str, Any]]], None]


class AccessPlane:
    """Composition of RBAC, classification gate, approvals and audit."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        audit: Optional[AuditLogger] = None,
        approvals: Optional[ApprovalManager] = None,
    ) -> None:
        self._config = config or get_config()
        self.audit = audit or AuditLogger.from_config(self._config)
        self.approvals = approvals or ApprovalManager(
            default_timeout_ms=self._config.approvals.default_timeout_ms
        )

    @property
    def default_policy(self) -> ExternalGatingPolicy:
        return self._config.classification.to_policy()

    # ── Permissions ──

    def authorize(
        self,
        actor: Actor,
        permission: Union[Permission, str],
        channel: Optional[ChannelId] = None,
    ) -> None:
        try:
            assert_permission(actor, permission)
        except PermissionDenied as exc:
            self.audit.emit(AuditEvent(
                event="permission.denied",
                actor=actor,
                channel=channel,
                details={"permission": exc.permission},
            ))
            raise
        self.audit.emit(AuditEvent(
            event="permission.granted",
            actor=actor,
            channel=channel,
            details={"permission": Permission(permission).value},
        ))

    # ── Classification ──

    def gate_outbound(
        self,
        text: str,
        classification: Union[ClassificationLevel, str],
        policy: Optional[ExternalGatingPolicy] = None,
        actor: Optional[Actor] = None,
        channel: Optional[ChannelId] = None,
    ) -> GateResult:
        """Gate *text* before it crosses the external-provider boundary."""
        policy = policy or self.default_policy
        level = ClassificationLevel(classification)
        try:
            result = gate_external_llm(level, policy, text)
        except ClassificationBlocked as exc:
            self.audit.emit(AuditEvent(
                event="classification.blocked",
                actor=actor,
                channel=channel,
                classification=level,
                details={"ceiling": exc.ceiling},
            ))
            raise

        details: Dict[str, Any] = {
            "ceiling": policy.max_external_classification.value,
            "masked": result.masked,
        }
        if result.masked:
            # Kinds only; raw values never reach the trail.
            details["pii_kinds"] = sorted({m.kind for m in mask_pii(text).matches})
        self.audit.emit(AuditEvent(
            event="classification.allowed",
            actor=actor,
            channel=channel,
            classification=level,
            details=details,
        ))
        return result

    # ── Approvals ──

    async def request_approval(
        self,
        title: str,
        requested_by: Actor,
        description: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        channel: Optional[ChannelId] = None,
        on_created: Optional[OnCreated] = None,
    ) -> ApprovalResult:
        """Create a request, hand it to *on_created* for rendering, await the outcome."""
        handle = self.approvals.create_approval(
            title=title,
            requested_by=requested_by,
            description=description,
            timeout_ms=timeout_ms,
            metadata=metadata,
        )
        request = handle.request
        self.audit.emit(AuditEvent(
            event="approval.requested",
            actor=requested_by,
            channel=channel,
            details={
                "request_id": request.id,
                "title": title,
                "timeout_ms": request.timeout_ms,
            },
        ))
        if on_created is not None:
            on_created(request, build_approval_blocks(request.id, title, description))

        result = await handle.result

        details: Dict[str, Any] = {"request_id": request.id, "title": title}
        if result.decision == ApprovalDecision.TIMEOUT:
            details["message"] = TIMEOUT_MESSAGE
        if result.reason:
            details["reason"] = result.reason
        self.audit.emit(AuditEvent(
            event=f"approval.{result.decision.value}",
            actor=result.decided_by or requested_by,
            channel=channel,
            details=details,
        ))
        return result

    def decide(
        self,
        request_id: str,
        decision: Union[ApprovalDecision, str],
        actor: Actor,
        reason: Optional[str] = None,
        channel: Optional[ChannelId] = None,
    ) -> bool:
        """Decision callback for channel adapters. Requires approvals:decide.

        An unknown or timeout decision raises ValueError before any
        permission check is made or audited.
        """
        decision = ApprovalDecision(decision)
        if decision == ApprovalDecision.TIMEOUT:
            raise ValueError("timeout is not a decision a human can make")
        self.authorize(actor, Permission.APPROVALS_DECIDE, channel=channel)
        accepted = self.approvals.decide(request_id, decision, actor, reason=reason)
        if not accepted:
            self.audit.emit(AuditEvent(
                event="approval.decision_ignored",
                actor=actor,
                channel=channel,
                details={"request_id": request_id, "decision": decision.value},
            ))
        return accepted
