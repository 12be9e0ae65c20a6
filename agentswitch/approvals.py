"""Human approval broker.

Runtimes ask for approval through ``ApprovalPort``; the broker forwards the
request to whichever consumer is attached to the conversation and parks a
future until that consumer answers. No answer in time means deny.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from agentswitch.ports import ApprovalRequest

log = logging.getLogger("approvals")

ApprovalNotifier = Callable[[ApprovalRequest], Awaitable[None]]


class ApprovalBroker:
    def __init__(self, timeout_s: float = 300.0):
        self._timeout_s = timeout_s
        self._notifiers: dict[str, ApprovalNotifier] = {}
        # request_id -> (conversation_id, future(bool))
        self._pending: dict[str, tuple[str, asyncio.Future]] = {}

    def attach(self, conversation_id: str, notifier: ApprovalNotifier) -> None:
        self._notifiers[conversation_id] = notifier

    def detach(self, conversation_id: str, notifier: ApprovalNotifier | None = None) -> None:
        """Stop routing requests for a conversation and deny what is pending.

        With ``notifier`` given, only detach if it is still the attached one.
        """
        current = self._notifiers.get(conversation_id)
        if current is None or (notifier is not None and current is not notifier):
            return
        del self._notifiers[conversation_id]
        self.cancel_conversation(conversation_id)

    def pending(self, conversation_id: str) -> list[str]:
        return [rid for rid, (cid, _) in self._pending.items() if cid == conversation_id]

    async def request_approval(self, request: ApprovalRequest) -> bool:
        notifier = self._notifiers.get(request.conversation_id)
        if notifier is None:
            log.warning(
                f"No consumer attached to {request.conversation_id}; denying {request.title}"
            )
            return False

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request.request_id] = (request.conversation_id, future)
        try:
            try:
                await notifier(request)
            except Exception as e:
                log.warning(f"Could not deliver approval request {request.request_id}: {e}")
                return False
            answer = await asyncio.wait_for(future, timeout=self._timeout_s)
            return bool(answer)
        except asyncio.TimeoutError:
            log.warning(
                f"Approval request {request.request_id} timed out after {self._timeout_s:.0f}s; denying"
            )
            return False
        finally:
            self._pending.pop(request.request_id, None)

    def answer(self, request_id: str, allow: bool) -> bool:
        """Answer a pending request. False if it is unknown or already settled."""
        entry = self._pending.get(request_id)
        if not entry:
            return False
        _, future = entry
        if future.done():
            return False
        future.set_result(bool(allow))
        return True

    def cancel_conversation(self, conversation_id: str) -> int:
        """Deny every pending request of a conversation."""
        denied = 0
        for request_id in self.pending(conversation_id):
            if self.answer(request_id, False):
                denied += 1
        if denied:
            log.info(f"Denied {denied} pending approval(s) for {conversation_id}")
        return denied
