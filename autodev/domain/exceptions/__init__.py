"""
Domain exceptions for the tool orchestrator.

Usage:
    from autodev.domain.exceptions import MCPServerNotFoundError

    try:
        result = await orchestrator.call_tool("cache", "get", {})
    except MCPServerNotFoundError as e:
        logger.error(f"Unknown provider: {e.server_name}")
"""

from autodev.domain.exceptions.mcp import (
    MCPChannelClosedError,
    MCPError,
    MCPProtocolError,
    MCPRemoteError,
    MCPRequestTimeoutError,
    MCPServerError,
    MCPServerNotConnectedError,
    MCPServerNotFoundError,
    MCPServerSpawnError,
    MCPToolError,
    MCPToolExecutionError,
    MCPToolInvocationError,
    MCPTransportError,
)

__all__ = [
    "MCPError",
    "MCPServerError",
    "MCPServerNotFoundError",
    "MCPServerNotConnectedError",
    "MCPServerSpawnError",
    "MCPToolError",
    "MCPToolInvocationError",
    "MCPToolExecutionError",
    "MCPTransportError",
    "MCPChannelClosedError",
    "MCPRequestTimeoutError",
    "MCPProtocolError",
    "MCPRemoteError",
]
