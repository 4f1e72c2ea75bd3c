"""
ToolInvokerPort - Abstract interface for invoking tools on named servers.

Consumed by the planning loop and by the project context service; the
registry-backed invoker is the production implementation.
"""

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable

from autodev.domain.model.mcp.tool import ToolResult


@runtime_checkable
class ToolInvokerPort(Protocol):
    """
    Abstract interface for tool invocation.
    """

    @abstractmethod
    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Call a tool on a named server.

        Args:
            server_name: Logical server name (e.g. "filesystem").
            tool_name: Tool name as declared by the server.
            arguments: Tool arguments.
            timeout: Optional per-call timeout in seconds.

        Returns:
            ToolResult, including results flagged with ``is_error``.

        Raises:
            MCPServerNotFoundError: If the server was never configured.
            MCPServerNotConnectedError: If the server is not ready.
            MCPToolInvocationError: If the transport round-trip fails.
        """
        ...
