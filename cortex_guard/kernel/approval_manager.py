"""ApprovalManager — bounded, asynchronous human sign-off.

Lifecycle of a request::

    PENDING ──decide(approved)──▶ APPROVED
            ──decide(rejected)──▶ REJECTED
            ──timer fires──────▶ TIMED_OUT

Every terminal state is final. The pending registry is private to the
instance and is touched from exactly two places, ``decide()`` and the
timer callback. Both run check-remove-resolve without an ``await`` in
between, so on the event loop whichever runs first wins and the other
finds no entry. Code on other threads must go through
``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional, Union

from cortex_guard.core.enums import ApprovalDecision
from cortex_guard.core.protocols import Actor, ApprovalRequest, ApprovalResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5 * 60_000


class ApprovalHandle(NamedTuple):
    """What the issuer gets back: the frozen request and its single result."""
    request: ApprovalRequest
    result: "asyncio.Future[ApprovalResult]"


@dataclass
class _Pending:
    request: ApprovalRequest
    future: "asyncio.Future[ApprovalResult]"
    timer: asyncio.TimerHandle


class ApprovalManager:
    """Owns the pending-approval registry for one deployment."""

    def __init__(self, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self._default_timeout_ms = default_timeout_ms
        self._pending: Dict[str, _Pending] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def create_approval(
        self,
        title: str,
        requested_by: Actor,
        description: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ApprovalHandle:
        """Register a request and arm its timeout.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        if timeout_ms is None:
            timeout_ms = self._default_timeout_ms
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")

        request_id = str(uuid.uuid4())
        request = ApprovalRequest(
            id=request_id,
            title=title,
            description=description,
            requested_by=requested_by,
            timeout_ms=timeout_ms,
            metadata=copy.deepcopy(metadata) if metadata is not None else None,
        )
        future: asyncio.Future[ApprovalResult] = loop.create_future()
        timer = loop.call_later(timeout_ms / 1000, self._on_timeout, request_id)
        self._pending[request_id] = _Pending(request=request, future=future, timer=timer)
        logger.info(
            "Approval %s requested by %s: %s (timeout=%dms)",
            request_id, requested_by.label, title, timeout_ms,
        )
        return ApprovalHandle(request=request, result=future)

    def decide(
        self,
        request_id: str,
        decision: Union[ApprovalDecision, str],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> bool:
        """Resolve a pending request. Returns False if it is no longer pending."""
        decision = ApprovalDecision(decision)
        if decision == ApprovalDecision.TIMEOUT:
            raise ValueError("timeout is not a decision a human can make")

        entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.debug("Ignoring %s on %s: not pending", decision.value, request_id)
            return False
        entry.timer.cancel()
        self._resolve(entry, ApprovalResult(
            id=request_id,
            decision=decision,
            decided_by=actor,
            reason=reason,
        ))
        logger.info("Approval %s %s by %s", request_id, decision.value, actor.label)
        return True

    def get_pending(self, request_id: str) -> Optional[ApprovalRequest]:
        entry = self._pending.get(request_id)
        return entry.request if entry is not None else None

    def _on_timeout(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        self._resolve(entry, ApprovalResult(id=request_id, decision=ApprovalDecision.TIMEOUT))
        logger.info("Approval %s timed out: no decision within the window", request_id)

    @staticmethod
    def _resolve(entry: _Pending, result: ApprovalResult) -> None:
        # The issuer may have cancelled its wait (e.g. asyncio.wait_for).
        if not entry.future.done():
            entry.future.set_result(result)
