"""Checkpointed graph runtime package."""

from agentswitch.runtimes.graph.processor import PendingAction, PendingInterrupt, find_interrupt
from agentswitch.runtimes.graph.runner import GraphCheckpointRuntime, GraphContext, GraphFactory

__all__ = [
    "GraphCheckpointRuntime",
    "GraphContext",
    "GraphFactory",
    "PendingAction",
    "PendingInterrupt",
    "find_interrupt",
]
