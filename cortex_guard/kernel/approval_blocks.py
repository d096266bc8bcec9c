"""Channel-agnostic presentation of an approval request.

Pure builders only: nothing here knows how a decision is made. A chat
adapter renders the blocks as buttons and, on click, maps the button's
action id back with ``decision_for_action``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from cortex_guard.core.enums import ApprovalDecision

APPROVE_ACTION_ID = "cortex_approval_approve"
REJECT_ACTION_ID = "cortex_approval_reject"

_ACTION_DECISIONS = {
    APPROVE_ACTION_ID: ApprovalDecision.APPROVED,
    REJECT_ACTION_ID: ApprovalDecision.REJECTED,
}


def _button(label: str, style: str, action_id: str, request_id: str) -> Dict[str, Any]:
    return {
        "type": "button",
        "text": {"type": "plain_text", "text": label},
        "style": style,
        "action_id": action_id,
        "value": request_id,
    }


def build_approval_blocks(
    request_id: str, title: str, description: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Text section, approve/reject buttons, and a footer with the request id."""
    text = f"*Approval required*: {title}\n{description or ''}".strip()
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": text}},
        {
            "type": "actions",
            "elements": [
                _button("Approve", "primary", APPROVE_ACTION_ID, request_id),
                _button("Reject", "danger", REJECT_ACTION_ID, request_id),
            ],
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Request ID: `{request_id}`"}],
        },
    ]


def decision_for_action(action_id: str) -> Optional[ApprovalDecision]:
    return _ACTION_DECISIONS.get(action_id)
