"""
MCP (Model Context Protocol) Domain Models.

Key value objects:
- ServerDescriptor / ServerState: provider configuration and lifecycle
- ToolSchema / ToolResult / ContentBlock: tool interface and results
- ProjectContextSnapshot: aggregated project state
"""

from autodev.domain.model.mcp.context import NO_REPOSITORY, ProjectContextSnapshot
from autodev.domain.model.mcp.server import (
    InitializeResult,
    ServerDescriptor,
    ServerFailure,
    ServerState,
)
from autodev.domain.model.mcp.tool import (
    AudioContent,
    ContentBlock,
    ImageContent,
    ResourceContent,
    TextContent,
    ToolResult,
    ToolSchema,
)

__all__ = [
    # Server
    "ServerDescriptor",
    "ServerState",
    "ServerFailure",
    "InitializeResult",
    # Tool
    "ToolSchema",
    "ToolResult",
    "ContentBlock",
    "TextContent",
    "ImageContent",
    "AudioContent",
    "ResourceContent",
    # Context
    "ProjectContextSnapshot",
    "NO_REPOSITORY",
]
