"""
MCP domain exceptions.

Exception hierarchy for tool provider orchestration: server lifecycle,
tool invocation, and the stdio transport.

Exception Hierarchy:
    MCPError (base)
    ├── MCPServerError
    │   ├── MCPServerNotFoundError      - Server name was never configured
    │   ├── MCPServerNotConnectedError  - Server known but not ready
    │   └── MCPServerSpawnError         - Provider process could not start
    ├── MCPToolError
    │   ├── MCPToolInvocationError      - Transport failure of a tool call
    │   └── MCPToolExecutionError       - Tool reported a domain error
    └── MCPTransportError
        ├── MCPChannelClosedError       - Channel closed with calls in flight
        ├── MCPRequestTimeoutError      - No response within the timeout
        ├── MCPProtocolError            - Malformed or unmatched frame
        └── MCPRemoteError              - Provider answered with an error
"""

from typing import Any


class MCPError(Exception):
    """Base exception for all MCP-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class MCPServerError(MCPError):
    """Base exception for MCP server errors."""


class MCPServerNotFoundError(MCPServerError):
    """Raised when a server name is not part of the configured set."""

    def __init__(self, server_name: str, message: str | None = None) -> None:
        self.server_name = server_name
        msg = message or f"MCP server '{server_name}' not found"
        super().__init__(msg, details={"server_name": server_name})


class MCPServerNotConnectedError(MCPServerError):
    """Raised when attempting operations on a server that is not ready."""

    def __init__(self, server_name: str, message: str | None = None) -> None:
        self.server_name = server_name
        msg = message or f"MCP server '{server_name}' is not connected"
        super().__init__(msg, details={"server_name": server_name})


class MCPServerSpawnError(MCPServerError):
    """Raised when a provider process cannot be started."""

    def __init__(
        self,
        server_name: str,
        command: str,
        original_error: Exception | None = None,
    ) -> None:
        self.server_name = server_name
        self.command = command
        msg = f"Failed to start MCP server '{server_name}' ({command})"
        super().__init__(
            msg,
            original_error=original_error,
            details={"server_name": server_name, "command": command},
        )


class MCPToolError(MCPError):
    """Base exception for MCP tool errors."""


class MCPToolInvocationError(MCPToolError):
    """Raised when a tool call fails below the tool itself (timeout, closed channel...)."""

    def __init__(
        self,
        server_name: str,
        tool_name: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.server_name = server_name
        self.tool_name = tool_name
        msg = message or f"Tool '{tool_name}' on server '{server_name}' could not be invoked"
        super().__init__(
            msg,
            original_error=original_error,
            details={"server_name": server_name, "tool_name": tool_name},
        )


class MCPToolExecutionError(MCPToolError):
    """Raised when a tool result flagged as an error cannot be tolerated."""

    def __init__(
        self,
        tool_name: str,
        message: str | None = None,
        original_error: Exception | None = None,
        server_name: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.server_name = server_name
        msg = message or f"Tool '{tool_name}' execution failed"
        super().__init__(
            msg,
            original_error=original_error,
            details={"tool_name": tool_name, "server_name": server_name},
        )


class MCPTransportError(MCPError):
    """Base exception for transport errors."""

    def __init__(
        self,
        message: str,
        server_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.server_name = server_name
        super().__init__(
            message,
            original_error=original_error,
            details={"server_name": server_name},
        )


class MCPChannelClosedError(MCPTransportError):
    """Raised for requests still pending when a channel closes."""


class MCPRequestTimeoutError(MCPTransportError):
    """Raised when a request receives no response within its timeout."""

    def __init__(
        self,
        server_name: str,
        method: str,
        timeout: float,
    ) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(
            f"MCP request '{method}' to '{server_name}' timed out after {timeout}s",
            server_name=server_name,
        )


class MCPProtocolError(MCPTransportError):
    """Raised for frames that are malformed or match no pending request."""

    def __init__(
        self,
        message: str,
        server_name: str | None = None,
        original_error: Exception | None = None,
        request_id: Any = None,
    ) -> None:
        # Set when the offending frame could be tied to a request
        self.request_id = request_id
        super().__init__(message, server_name=server_name, original_error=original_error)


class MCPRemoteError(MCPTransportError):
    """Raised when a provider answers a request with a JSON-RPC error."""

    def __init__(
        self,
        message: str,
        server_name: str | None = None,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        self.code = code
        self.data = data
        super().__init__(message, server_name=server_name)
