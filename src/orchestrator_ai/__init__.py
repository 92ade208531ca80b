"""orchestrator-ai: multi-agent missions under a token budget."""

__version__ = "0.1.0"
