"""
MCP infrastructure: provider processes, stdio channels, the server
registry and the tool invoker.
"""

from autodev.infrastructure.mcp.invoker import ToolInvoker
from autodev.infrastructure.mcp.orchestrator import MCPOrchestrator
from autodev.infrastructure.mcp.process import ProcessHandle, ProcessSupervisor
from autodev.infrastructure.mcp.registry import ServerHandle, ServerRegistry

__all__ = [
    "MCPOrchestrator",
    "ProcessHandle",
    "ProcessSupervisor",
    "ServerHandle",
    "ServerRegistry",
    "ToolInvoker",
]
