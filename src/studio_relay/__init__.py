"""Streaming chat relay for the Master Studio dashboard."""

__version__ = "0.1.0"
