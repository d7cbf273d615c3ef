"""Agent-based simulation of a monetary circuit economy."""

__version__ = "0.1.0"
