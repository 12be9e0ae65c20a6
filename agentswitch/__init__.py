"""AgentSwitch: one streaming contract over interchangeable agent runtimes."""

__version__ = "0.1.0"
