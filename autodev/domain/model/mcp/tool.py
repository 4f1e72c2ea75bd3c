"""
MCP Tool Domain Models.

Defines tool schemas, the closed set of content block kinds, and the
tool result value object.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Union


@dataclass(frozen=True)
class ToolSchema:
    """
    Tool interface declared by a provider through ``tools/list``.
    """

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (MCP protocol format)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class TextContent:
    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ImageContent:
    """Base64 encoded image data."""

    data: str
    mime_type: str
    type: Literal["image"] = "image"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data, "mimeType": self.mime_type}


@dataclass(frozen=True)
class AudioContent:
    """Base64 encoded audio data."""

    data: str
    mime_type: str
    type: Literal["audio"] = "audio"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data, "mimeType": self.mime_type}


@dataclass(frozen=True)
class ResourceContent:
    """Embedded resource, carrying either ``text`` or a base64 ``blob``."""

    uri: str
    mime_type: str | None = None
    text: str | None = None
    blob: str | None = None
    type: Literal["resource"] = "resource"

    def to_dict(self) -> dict[str, Any]:
        resource: dict[str, Any] = {"uri": self.uri}
        if self.mime_type is not None:
            resource["mimeType"] = self.mime_type
        if self.text is not None:
            resource["text"] = self.text
        if self.blob is not None:
            resource["blob"] = self.blob
        return {"type": self.type, "resource": resource}


ContentBlock = Union[TextContent, ImageContent, AudioContent, ResourceContent]


@dataclass(frozen=True)
class ToolResult:
    """
    Result of a tool call.

    ``is_error`` marks a failure reported by the tool itself. Transport
    failures never produce a ToolResult.
    """

    content: tuple[ContentBlock, ...] = ()
    is_error: bool = False

    @property
    def text(self) -> str:
        """Get the text blocks joined by newlines."""
        return "\n".join(block.text for block in self.content if isinstance(block, TextContent))

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        """Create a successful single-text result."""
        return cls(content=(TextContent(text=text),))

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        """Create an error single-text result."""
        return cls(content=(TextContent(text=text),), is_error=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (MCP protocol format)."""
        return {
            "content": [block.to_dict() for block in self.content],
            "isError": self.is_error,
        }
