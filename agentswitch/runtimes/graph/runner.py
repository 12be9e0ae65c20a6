"""Checkpointed LangGraph runtime.

The graph owns its persistence through a checkpointer keyed by
``thread_id``; a pause is an ``__interrupt__`` entry in the full-state
stream, and continuing means streaming the same thread again.
"""

from __future__ import annotations

import importlib
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Protocol

from langchain_core.messages import HumanMessage
from langgraph.types import Command

from agentswitch.config import GraphConfig
from agentswitch.errors import BackendFailure
from agentswitch.events import (
    CancelToken,
    DecisionType,
    InterruptArgs,
    ResumeArgs,
    RuntimeKind,
    StreamEvent,
    StreamMode,
    TurnInput,
)
from agentswitch.identity import SessionIdentityStore
from agentswitch.runtimes.base import BaseRuntime, RunState
from agentswitch.runtimes.graph.processor import parse_chunk

log = logging.getLogger("graph")

STREAM_MODES = [StreamMode.MESSAGES.value, StreamMode.VALUES.value]


@dataclass(frozen=True)
class GraphContext:
    conversation_id: str
    thread_id: str
    working_directory: str
    model_id: str | None = None


class CompiledGraph(Protocol):
    def astream(self, input: object, config: dict, *, stream_mode: list[str]) -> AsyncIterator:
        ...

    async def aget_state(self, config: dict) -> object:
        ...


GraphFactory = Callable[[GraphContext], Awaitable[CompiledGraph]]


def load_graph_factory(path: str) -> GraphFactory:
    """Import ``package.module:callable``."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Graph factory must look like 'module:callable', got {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"{path!r} is not callable")
    return factory


class GraphCheckpointRuntime(BaseRuntime):
    """Runs a checkpointed graph and streams both of its modes."""

    kind = RuntimeKind.GRAPH_CHECKPOINT

    def __init__(
        self,
        identities: SessionIdentityStore,
        graph_factory: GraphFactory | None = None,
        config: GraphConfig | None = None,
    ):
        super().__init__(identities)
        self._config = config or GraphConfig()
        self._graph_factory = graph_factory

    def _resolve_factory(self) -> GraphFactory:
        if self._graph_factory is None:
            path = self._config.resolve_factory_path()
            if not path:
                raise BackendFailure(
                    self.kind.value,
                    "no graph factory configured (set AGENTSWITCH_GRAPH_FACTORY)",
                )
            self._graph_factory = load_graph_factory(path)
        return self._graph_factory

    def _thread_id(self, conversation_id: str) -> str:
        return self._identities.get(conversation_id, self.kind) or conversation_id

    async def _open_graph(
        self,
        conversation_id: str,
        working_directory: str,
        model_id: str | None = None,
    ) -> tuple[CompiledGraph, str]:
        thread_id = self._thread_id(conversation_id)
        graph = await self._resolve_factory()(
            GraphContext(
                conversation_id=conversation_id,
                thread_id=thread_id,
                working_directory=working_directory,
                model_id=model_id,
            )
        )
        return graph, thread_id

    def _run_config(self, thread_id: str) -> dict:
        return {
            "configurable": {"thread_id": thread_id},
            "recursion_limit": self._config.recursion_limit,
        }

    async def _has_pending_interrupt(self, graph: CompiledGraph, thread_id: str) -> bool:
        """True when the checkpoint is paused inside an ``interrupt()`` call."""
        get_state = getattr(graph, "aget_state", None)
        if get_state is None:
            return False
        snapshot = await get_state({"configurable": {"thread_id": thread_id}})
        if getattr(snapshot, "interrupts", None):
            return True
        return any(getattr(task, "interrupts", None) for task in getattr(snapshot, "tasks", ()))

    async def _stream_graph(
        self,
        graph: CompiledGraph,
        graph_input: object,
        thread_id: str,
        token: CancelToken,
        state: RunState,
    ) -> AsyncIterator[StreamEvent]:
        stream = graph.astream(graph_input, self._run_config(thread_id), stream_mode=STREAM_MODES)
        async with aclosing(stream):
            async for chunk in stream:
                if token.cancelled:
                    return
                event = parse_chunk(chunk)
                if event is None:
                    continue
                # The checkpoint exists once the graph has produced output.
                self._remember_native_id(state, thread_id)
                yield event

    async def _begin(
        self, turn: TurnInput, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        graph, thread_id = await self._open_graph(
            turn.conversation_id, turn.working_directory, turn.model_id
        )
        graph_input = {"messages": [HumanMessage(content=turn.message)]}
        async for event in self._stream_graph(graph, graph_input, thread_id, token, state):
            yield event

    async def _continue(
        self, args: ResumeArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        graph, thread_id = await self._open_graph(args.conversation_id, args.working_directory)
        command = Command(resume={"decisions": [{"type": args.decision}]})
        async for event in self._stream_graph(graph, command, thread_id, token, state):
            yield event

    async def _respond(
        self, args: InterruptArgs, token: CancelToken, state: RunState
    ) -> AsyncIterator[StreamEvent]:
        decision = args.decision
        if decision.type == DecisionType.REJECT:
            log.info(f"Interrupt rejected for {args.conversation_id}; not continuing")
            return

        graph, thread_id = await self._open_graph(args.conversation_id, args.working_directory)
        if decision.type == DecisionType.EDIT:
            graph_input: object = Command(
                resume={
                    "decisions": [{"type": "edit", "edited_action": decision.edited_action}]
                }
            )
        elif await self._has_pending_interrupt(graph, thread_id):
            graph_input = Command(resume={"decisions": [{"type": "approve"}]})
        else:
            # Static breakpoint: no new input, continue from the last checkpoint.
            graph_input = None
        async for event in self._stream_graph(graph, graph_input, thread_id, token, state):
            yield event
