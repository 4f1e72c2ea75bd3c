"""
MCP Transport Layer.

- framing: newline-delimited JSON records
- protocol: JSON-RPC message building and shape validation
- stdio: request/response channel over a provider's stdio
"""

from autodev.infrastructure.mcp.transport.framing import FrameDecoder, encode_frame
from autodev.infrastructure.mcp.transport.stdio import PendingRequest, StdioChannel

__all__ = [
    "FrameDecoder",
    "encode_frame",
    "PendingRequest",
    "StdioChannel",
]
