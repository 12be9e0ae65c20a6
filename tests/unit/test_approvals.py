"""Tests for the approval broker."""

from __future__ import annotations

import asyncio

import pytest

from agentswitch.approvals import ApprovalBroker
from agentswitch.ports import ApprovalRequest, ApprovalScope

# -- Helpers ---------------------------------------------------------------


def _request(request_id: str = "r1", conversation_id: str = "c1") -> ApprovalRequest:
    return ApprovalRequest(
        request_id=request_id,
        conversation_id=conversation_id,
        scope=ApprovalScope.TOOL,
        title="Tool Permission Request",
        message="Claude wants to use: Write",
        tool_name="Write",
    )


class Surface:
    """Records what the broker delivers."""

    def __init__(self) -> None:
        self.delivered: list[ApprovalRequest] = []
        self.arrived = asyncio.Event()

    async def __call__(self, request: ApprovalRequest) -> None:
        self.delivered.append(request)
        self.arrived.set()


@pytest.fixture()
def broker() -> ApprovalBroker:
    return ApprovalBroker(timeout_s=5)


# -- Tests -----------------------------------------------------------------


async def test_denies_without_consumer(broker: ApprovalBroker) -> None:
    assert await broker.request_approval(_request()) is False


async def test_answer_allows(broker: ApprovalBroker) -> None:
    surface = Surface()
    broker.attach("c1", surface)
    pending = asyncio.create_task(broker.request_approval(_request()))
    await surface.arrived.wait()

    assert broker.pending("c1") == ["r1"]
    assert broker.answer("r1", True)
    assert await pending is True
    assert broker.pending("c1") == []
    assert surface.delivered[0].to_payload()["type"] == "approval_request"


async def test_answer_unknown_request(broker: ApprovalBroker) -> None:
    assert not broker.answer("nope", True)


async def test_timeout_denies() -> None:
    broker = ApprovalBroker(timeout_s=0.01)
    broker.attach("c1", Surface())
    assert await broker.request_approval(_request()) is False
    assert broker.pending("c1") == []


async def test_failed_delivery_denies(broker: ApprovalBroker) -> None:
    async def broken(request: ApprovalRequest) -> None:
        raise ConnectionResetError("socket gone")

    broker.attach("c1", broken)
    assert await broker.request_approval(_request()) is False


async def test_detach_denies_pending(broker: ApprovalBroker) -> None:
    surface = Surface()
    broker.attach("c1", surface)
    pending = asyncio.create_task(broker.request_approval(_request()))
    await surface.arrived.wait()

    broker.detach("c1", surface)
    assert await pending is False
    assert await broker.request_approval(_request("r2")) is False


async def test_detach_ignores_stale_notifier(broker: ApprovalBroker) -> None:
    old, new = Surface(), Surface()
    broker.attach("c1", old)
    broker.attach("c1", new)
    broker.detach("c1", old)

    pending = asyncio.create_task(broker.request_approval(_request()))
    await new.arrived.wait()
    broker.answer("r1", True)
    assert await pending is True


async def test_cancel_conversation_only_touches_that_conversation(
    broker: ApprovalBroker,
) -> None:
    a, b = Surface(), Surface()
    broker.attach("c1", a)
    broker.attach("c2", b)
    first = asyncio.create_task(broker.request_approval(_request("r1", "c1")))
    second = asyncio.create_task(broker.request_approval(_request("r2", "c2")))
    await a.arrived.wait()
    await b.arrived.wait()

    assert broker.cancel_conversation("c1") == 1
    assert await first is False
    assert not second.done()
    broker.answer("r2", True)
    assert await second is True
