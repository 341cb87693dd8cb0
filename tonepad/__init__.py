"""Agent-driven live script playground: state store, sandbox and action bridge."""

__version__ = "0.1.0"
