"""
Reference tool providers.

Each provider is a standalone process speaking newline-delimited
JSON-RPC on stdin/stdout:

    python -m autodev.providers.filesystem
    python -m autodev.providers.terminal
    python -m autodev.providers.web
"""

from autodev.providers.base import StdioToolServer, ToolArgumentError, ToolHandler

__all__ = ["StdioToolServer", "ToolArgumentError", "ToolHandler"]
