"""Graph runtime event processing.

Turns LangGraph stream chunks into stream events, and lets consumers find
the pause marker inside a full-state update.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field

from langchain_core.load import dumpd
from langchain_core.load.serializable import Serializable

from agentswitch.events import StateUpdateEvent, StreamEvent, StreamMode

log = logging.getLogger("graph")

INTERRUPT_KEY = "__interrupt__"


@dataclass(frozen=True)
class PendingAction:
    name: str
    args: dict = field(default_factory=dict)
    description: str | None = None


@dataclass(frozen=True)
class PendingInterrupt:
    """A paused graph waiting on a human decision."""

    interrupt_id: str | None
    value: object
    actions: list[PendingAction] = field(default_factory=list)


def _json_default(obj: object) -> object:
    if isinstance(obj, Serializable):
        return dumpd(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump()
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    return str(obj)


def to_plain(data: object) -> object:
    """Detach a chunk from graph-owned objects into plain JSON data."""
    return json.loads(json.dumps(data, default=_json_default))


def parse_chunk(chunk: object) -> StreamEvent | None:
    """Multi-mode streaming yields ``(mode, data)`` tuples."""
    if not isinstance(chunk, tuple) or len(chunk) != 2:
        log.debug(f"Ignoring unexpected graph chunk: {type(chunk).__name__}")
        return None
    mode, data = chunk
    try:
        stream_mode = StreamMode(mode)
    except ValueError:
        log.debug(f"Ignoring graph chunk for stream mode {mode!r}")
        return None
    return StateUpdateEvent(mode=stream_mode, data=to_plain(data))


def _parse_actions(value: object) -> list[PendingAction]:
    if not isinstance(value, dict):
        return []
    requests = value.get("action_requests")
    if not isinstance(requests, list):
        requests = [value] if "name" in value else []
    actions: list[PendingAction] = []
    for req in requests:
        if not isinstance(req, dict):
            continue
        name = req.get("name") or req.get("action")
        if not isinstance(name, str) or not name:
            continue
        args = req.get("args")
        description = req.get("description")
        actions.append(
            PendingAction(
                name=name,
                args=args if isinstance(args, dict) else {},
                description=description if isinstance(description, str) else None,
            )
        )
    return actions


def find_interrupt(event: StreamEvent) -> PendingInterrupt | None:
    """Return the pending interrupt carried by a full-state update, if any."""
    if not isinstance(event, StateUpdateEvent) or event.mode != StreamMode.VALUES:
        return None
    if not isinstance(event.data, dict):
        return None
    entries = event.data.get(INTERRUPT_KEY)
    if not entries:
        return None
    entry = entries[0] if isinstance(entries, list) else entries
    if not isinstance(entry, dict):
        return PendingInterrupt(interrupt_id=None, value=entry)
    value = entry.get("value")
    interrupt_id = entry.get("id")
    return PendingInterrupt(
        interrupt_id=interrupt_id if isinstance(interrupt_id, str) else None,
        value=value,
        actions=_parse_actions(value),
    )
