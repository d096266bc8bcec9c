"""Kernel package — the decision core of the access plane.

- rbac: fail-closed permission checks over a fixed role matrix
- classification: gate for content crossing the external-provider boundary
- audit_logger: append-only trail with secret redaction
- approval_manager: asynchronous human sign-off with exactly-once resolution
- access_plane: the four wired together, every step audited
"""

from cortex_guard.kernel.rbac import (
    PERMISSION_MATRIX,
    assert_permission,
    has_permission,
    normalize_roles,
    permissions_for,
)
from cortex_guard.kernel.classification import (
    CLASSIFICATION_ORDER,
    can_send_to_external_llm,
    compare_classification,
    gate_external_llm,
    mask_pii,
)
from cortex_guard.kernel.audit_logger import AuditLogger, redact_text
from cortex_guard.kernel.approval_manager import ApprovalHandle, ApprovalManager
from cortex_guard.kernel.approval_blocks import build_approval_blocks, decision_for_action
from cortex_guard.kernel.access_plane import AccessPlane

__all__ = [
    "PERMISSION_MATRIX",
    "assert_permission",
    "has_permission",
    "normalize_roles",
    "permissions_for",
    "CLASSIFICATION_ORDER",
    "can_send_to_external_llm",
    "compare_classification",
    "gate_external_llm",
    "mask_pii",
    "AuditLogger",
    "redact_text",
    "ApprovalHandle",
    "ApprovalManager",
    "build_approval_blocks",
    "decision_for_action",
    "AccessPlane",
]
