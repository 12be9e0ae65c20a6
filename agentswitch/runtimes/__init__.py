"""Agent runtime adapters."""

from agentswitch.runtimes.ports import RuntimeBackend, RuntimeFactoryPort
from agentswitch.runtimes.registry import RuntimeFactory, create_runtime

__all__ = [
    "RuntimeBackend",
    "RuntimeFactory",
    "RuntimeFactoryPort",
    "create_runtime",
]
