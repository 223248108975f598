"""Mistral AI chat node for graph-based workflow hosts."""

__version__ = "0.1.0"
