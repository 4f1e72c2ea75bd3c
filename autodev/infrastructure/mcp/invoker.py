"""Tool invocation against ready provider servers."""

import logging
import time
from typing import Any

from autodev.domain.exceptions.mcp import MCPToolInvocationError, MCPTransportError
from autodev.domain.model.mcp.tool import ToolResult
from autodev.infrastructure.mcp.registry import ServerRegistry

logger = logging.getLogger(__name__)


class ToolInvoker:
    """
    Routes tool calls to the channel of a ready server.

    Implements ToolInvokerPort. A result flagged ``is_error`` is a normal
    return; only failures below the tool (unknown or unready server,
    timeout, closed channel, malformed response) raise.
    """

    def __init__(self, registry: ServerRegistry, default_timeout: float | None = None) -> None:
        """
        Args:
            registry: Registry owning the server handles.
            default_timeout: Timeout override in seconds; the channel default applies when None.
        """
        self._registry = registry
        self._default_timeout = default_timeout

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Call a tool on a named server.

        Raises:
            MCPServerNotFoundError: If the server was never configured.
            MCPServerNotConnectedError: If the server is not ready.
            MCPToolInvocationError: If the call fails in transport.
        """
        channel = self._registry.get_ready_channel(server_name)
        timeout = timeout if timeout is not None else self._default_timeout

        started = time.monotonic()
        try:
            result = await channel.call_tool(tool_name, arguments or {}, timeout=timeout)
        except MCPTransportError as e:
            logger.error(f"Error calling tool '{tool_name}' on '{server_name}': {e}")
            raise MCPToolInvocationError(server_name, tool_name, original_error=e) from e

        latency_ms = (time.monotonic() - started) * 1000
        logger.debug(
            f"Tool '{tool_name}' on '{server_name}' completed in {latency_ms:.1f}ms"
            + (" (is_error)" if result.is_error else "")
        )
        return result
