"""Tests for the approval state machine and its presentation blocks."""

import asyncio

import pytest

from cortex_guard.core.enums import ApprovalDecision
from cortex_guard.core.protocols import Actor
from cortex_guard.kernel.approval_blocks import (
    APPROVE_ACTION_ID,
    REJECT_ACTION_ID,
    build_approval_blocks,
    decision_for_action,
)
from cortex_guard.kernel.approval_manager import ApprovalManager

REQUESTER = Actor(id="U1", display_name="Requester", roles=["developer"])
APPROVER = Actor(id="U2", display_name="Approver", roles=["manager"])


@pytest.mark.asyncio
async def test_create_registers_pending_request():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy api", REQUESTER, description="v2.3", metadata={"env": "prod"})

    req = handle.request
    assert req.title == "Deploy api"
    assert req.timeout_ms == 300_000
    assert req.requested_by == REQUESTER
    assert req.metadata == {"env": "prod"}
    assert mgr.get_pending(req.id) == req
    assert mgr.pending_count == 1
    assert not handle.result.done()

    mgr.decide(req.id, "rejected", APPROVER)


@pytest.mark.asyncio
async def test_request_metadata_is_a_deep_copy():
    mgr = ApprovalManager()
    metadata = {"env": "prod", "targets": ["api"]}
    handle = mgr.create_approval("Deploy api", REQUESTER, metadata=metadata)
    metadata["targets"].append("worker")
    metadata["env"] = "staging"

    assert handle.request.metadata == {"env": "prod", "targets": ["api"]}
    mgr.decide(handle.request.id, "approved", APPROVER)


@pytest.mark.asyncio
async def test_request_is_frozen():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER)
    with pytest.raises(Exception):
        handle.request.title = "changed"
    mgr.decide(handle.request.id, "approved", APPROVER)


@pytest.mark.asyncio
async def test_decide_resolves_and_removes():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER)

    assert mgr.decide(handle.request.id, ApprovalDecision.APPROVED, APPROVER, reason="lgtm") is True
    result = await handle.result
    assert result.id == handle.request.id
    assert result.decision == ApprovalDecision.APPROVED
    assert result.decided_by == APPROVER
    assert result.reason == "lgtm"
    assert result.decided_at
    assert mgr.get_pending(handle.request.id) is None
    assert mgr.pending_count == 0


@pytest.mark.asyncio
async def test_double_decide_is_idempotent():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER)
    rid = handle.request.id

    assert mgr.decide(rid, "approved", APPROVER) is True
    assert mgr.decide(rid, "rejected", APPROVER) is False
    assert mgr.decide(rid, "approved", APPROVER) is False
    assert (await handle.result).decision == ApprovalDecision.APPROVED


@pytest.mark.asyncio
async def test_racing_decisions_first_wins():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER)
    rid = handle.request.id

    async def _decide(decision):
        await asyncio.sleep(0)
        return mgr.decide(rid, decision, APPROVER)

    outcomes = await asyncio.gather(_decide("approved"), _decide("rejected"))
    assert sorted(outcomes) == [False, True]
    assert outcomes[0] is True
    assert (await handle.result).decision == ApprovalDecision.APPROVED


@pytest.mark.asyncio
async def test_unknown_id_is_noop():
    mgr = ApprovalManager()
    assert mgr.decide("does-not-exist", "approved", APPROVER) is False
    assert mgr.get_pending("does-not-exist") is None


@pytest.mark.asyncio
async def test_timeout_resolves_after_window():
    mgr = ApprovalManager()
    loop = asyncio.get_running_loop()
    started = loop.time()
    handle = mgr.create_approval("Deploy", REQUESTER, timeout_ms=50)

    await asyncio.sleep(0.06)
    assert handle.result.done()
    result = handle.result.result()
    assert result.decision == ApprovalDecision.TIMEOUT
    assert result.decided_by is None
    assert loop.time() - started >= 0.05
    assert mgr.get_pending(handle.request.id) is None


@pytest.mark.asyncio
async def test_decide_after_timeout_is_noop():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER, timeout_ms=10)
    result = await asyncio.wait_for(handle.result, timeout=1)
    assert result.decision == ApprovalDecision.TIMEOUT

    assert mgr.decide(handle.request.id, "approved", APPROVER) is False
    assert handle.result.result().decision == ApprovalDecision.TIMEOUT


@pytest.mark.asyncio
async def test_late_timer_callback_after_decide_is_noop():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER, timeout_ms=10_000)
    rid = handle.request.id

    assert mgr.decide(rid, "rejected", APPROVER) is True
    mgr._on_timeout(rid)
    assert (await handle.result).decision == ApprovalDecision.REJECTED


@pytest.mark.asyncio
async def test_decide_cancels_timer():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER, timeout_ms=20)
    mgr.decide(handle.request.id, "approved", APPROVER)
    await asyncio.sleep(0.04)
    assert handle.result.result().decision == ApprovalDecision.APPROVED


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_break_decide():
    mgr = ApprovalManager()
    handle = mgr.create_approval("Deploy", REQUESTER)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(handle.result, timeout=0.01)
    assert mgr.decide(handle.request.id, "approved", APPROVER) is True


@pytest.mark.asyncio
async def test_default_timeout_comes_from_constructor():
    mgr = ApprovalManager(default_timeout_ms=1234)
    handle = mgr.create_approval("Deploy", REQUESTER)
    assert handle.request.timeout_ms == 1234
    mgr.decide(handle.request.id, "approved", APPROVER)


@pytest.mark.asyncio
async def test_invalid_arguments():
    mgr = ApprovalManager()
    with pytest.raises(ValueError):
        mgr.create_approval("Deploy", REQUESTER, timeout_ms=-1)
    handle = mgr.create_approval("Deploy", REQUESTER)
    with pytest.raises(ValueError):
        mgr.decide(handle.request.id, "timeout", APPROVER)
    with pytest.raises(ValueError):
        mgr.decide(handle.request.id, "maybe", APPROVER)
    assert mgr.get_pending(handle.request.id) is not None
    mgr.decide(handle.request.id, "rejected", APPROVER)


def test_create_requires_running_loop():
    with pytest.raises(RuntimeError):
        ApprovalManager().create_approval("Deploy", REQUESTER)


def test_managers_do_not_share_state():
    async def _run():
        a, b = ApprovalManager(), ApprovalManager()
        handle = a.create_approval("Deploy", REQUESTER)
        assert b.get_pending(handle.request.id) is None
        assert b.decide(handle.request.id, "approved", APPROVER) is False
        a.decide(handle.request.id, "approved", APPROVER)

    asyncio.run(_run())


# ── Presentation blocks ──


def test_build_approval_blocks_structure():
    blocks = build_approval_blocks("req-1", "Deploy api", "v2.3 to prod")
    assert [b["type"] for b in blocks] == ["section", "actions", "context"]
    assert blocks[0]["text"]["text"] == "*Approval required*: Deploy api\nv2.3 to prod"

    buttons = blocks[1]["elements"]
    assert [b["action_id"] for b in buttons] == [APPROVE_ACTION_ID, REJECT_ACTION_ID]
    assert all(b["value"] == "req-1" for b in buttons)
    assert "req-1" in blocks[2]["elements"][0]["text"]


def test_build_approval_blocks_without_description():
    blocks = build_approval_blocks("req-2", "Rotate keys")
    assert blocks[0]["text"]["text"] == "*Approval required*: Rotate keys"


def test_decision_for_action():
    assert decision_for_action(APPROVE_ACTION_ID) == ApprovalDecision.APPROVED
    assert decision_for_action(REJECT_ACTION_ID) == ApprovalDecision.REJECTED
    assert decision_for_action("something_else") is None
