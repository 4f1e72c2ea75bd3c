"""Orchestration layer for local MCP tool provider processes."""

__version__ = "0.1.0"
