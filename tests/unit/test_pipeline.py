"""Tests for the JSON-lines pipeline and Codex record processing."""

from __future__ import annotations

from collections.abc import AsyncIterator

from agentswitch.events import ErrorEvent, TokenEvent
from agentswitch.runtimes.codex.processor import CodexEventProcessor
from agentswitch.runtimes.pipeline import JSONLineStats, iter_json_lines

# -- Helpers ---------------------------------------------------------------


async def _lines(*lines: bytes) -> AsyncIterator[bytes]:
    for line in lines:
        yield line


async def _collect(stream: AsyncIterator[dict]) -> list[dict]:
    return [record async for record in stream]


# -- iter_json_lines --------------------------------------------------------


async def test_iter_json_lines_skips_noise() -> None:
    stats = JSONLineStats()
    records = await _collect(
        iter_json_lines(
            _lines(b'{"type": "a"}\n', b"\n", b"warning: something\n", b"[1, 2]\n", b'{"type": "b"}'),
            stats,
        )
    )
    assert records == [{"type": "a"}, {"type": "b"}]
    assert stats.records == 2
    assert stats.non_json_lines == ["warning: something"]


async def test_iter_json_lines_bounds_noise() -> None:
    stats = JSONLineStats()
    await _collect(iter_json_lines(_lines(*[b"noise\n"] * 5), stats, non_json_limit=2))
    assert stats.non_json_lines == ["noise", "noise"]


# -- Codex records ------------------------------------------------------------


def test_codex_thread_id() -> None:
    processor = CodexEventProcessor()
    assert processor.thread_id_of({"type": "thread.started", "thread_id": "t-1"}) == "t-1"
    assert processor.thread_id_of({"type": "turn.started"}) is None


def test_codex_text_items_become_tokens() -> None:
    processor = CodexEventProcessor()
    assert processor.parse_event(
        {"type": "item.completed", "item": {"type": "agent_message", "text": "done"}}, "m"
    ) == [TokenEvent("m", "done")]
    assert processor.parse_event(
        {"type": "item.completed", "item": {"type": "reasoning", "text": "thinking"}}, "m"
    ) == [TokenEvent("m", "thinking")]
    assert processor.parse_event(
        {"type": "item.completed", "item": {"type": "command_execution", "command": "ls"}}, "m"
    ) == []


def test_codex_failures_become_errors() -> None:
    processor = CodexEventProcessor()
    assert processor.parse_event(
        {"type": "turn.failed", "error": {"message": "quota"}}, "m"
    ) == [ErrorEvent("quota")]
    assert processor.parse_event({"type": "turn.failed"}, "m") == [ErrorEvent("Turn failed")]
    assert processor.parse_event({"type": "error", "message": "lost"}, "m") == [
        ErrorEvent("lost")
    ]
