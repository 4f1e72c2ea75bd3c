"""
Provider protocol messages.

Builds JSON-RPC requests and validates incoming frames and payloads
against the expected shapes. Anything that does not fit is reported as
``MCPProtocolError``; unchecked values never leave this module.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autodev.domain.exceptions.mcp import MCPProtocolError
from autodev.domain.model.mcp.tool import (
    AudioContent,
    ContentBlock,
    ImageContent,
    ResourceContent,
    TextContent,
    ToolResult,
    ToolSchema,
)

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


def build_request(request_id: str, method: str, params: dict[str, Any] | None) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": params or {},
    }


def build_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def build_error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


class MessageKind(str, Enum):
    """Kinds of frames a provider may send."""

    RESPONSE = "response"
    NOTIFICATION = "notification"
    REQUEST = "request"


@dataclass(frozen=True)
class IncomingMessage:
    """A decoded frame with a validated envelope."""

    kind: MessageKind
    id: Any = None
    method: str | None = None
    result: Any = None
    error: "ErrorPayload | None" = None
    raw: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


# --- Payload shapes ---


class ErrorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str
    code: int | None = None
    data: Any = None


class _TextBlock(BaseModel):
    type: Literal["text"]
    text: str


class _ImageBlock(BaseModel):
    type: Literal["image"]
    data: str
    mimeType: str


class _AudioBlock(BaseModel):
    type: Literal["audio"]
    data: str
    mimeType: str


class _ResourceBody(BaseModel):
    uri: str
    mimeType: str | None = None
    text: str | None = None
    blob: str | None = None


class _ResourceBlock(BaseModel):
    type: Literal["resource"]
    resource: _ResourceBody


_ContentBlockModel = Annotated[
    Union[_TextBlock, _ImageBlock, _AudioBlock, _ResourceBlock],
    Field(discriminator="type"),
]


class _ToolCallResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: list[_ContentBlockModel]
    isError: bool = False


class _ToolDeclaration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None
    inputSchema: dict[str, Any] = Field(default_factory=dict)


class _ToolList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tools: list[_ToolDeclaration] = Field(default_factory=list)


# --- Decoding ---


def decode_frame(frame: bytes, server_name: str | None = None) -> IncomingMessage:
    """Decode one frame and classify its envelope.

    Raises:
        MCPProtocolError: If the frame is not a valid JSON-RPC message.
    """
    try:
        data = json.loads(frame.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MCPProtocolError(
            f"Undecodable frame: {e}", server_name=server_name, original_error=e
        ) from e

    if not isinstance(data, dict):
        raise MCPProtocolError(
            f"Frame is not a JSON object: {type(data).__name__}", server_name=server_name
        )

    method = data.get("method")
    if method is not None:
        if not isinstance(method, str):
            raise MCPProtocolError("Frame method must be a string", server_name=server_name)
        if "id" in data and data["id"] is not None:
            return IncomingMessage(
                kind=MessageKind.REQUEST, id=data["id"], method=method, raw=data
            )
        return IncomingMessage(kind=MessageKind.NOTIFICATION, method=method, raw=data)

    if "id" not in data:
        raise MCPProtocolError("Response frame has no id", server_name=server_name)

    has_result = "result" in data
    has_error = "error" in data and data["error"] is not None
    if has_result == has_error:
        raise MCPProtocolError(
            f"Response {data['id']!r} must carry exactly one of 'result' or 'error'",
            server_name=server_name,
            request_id=data["id"],
        )

    error = None
    if has_error:
        try:
            error = ErrorPayload.model_validate(data["error"])
        except ValidationError as e:
            raise MCPProtocolError(
                f"Malformed error in response {data['id']!r}",
                server_name=server_name,
                original_error=e,
                request_id=data["id"],
            ) from e

    return IncomingMessage(
        kind=MessageKind.RESPONSE,
        id=data["id"],
        result=data.get("result"),
        error=error,
        raw=data,
    )


def _to_content_block(block: BaseModel) -> ContentBlock:
    if isinstance(block, _TextBlock):
        return TextContent(text=block.text)
    if isinstance(block, _ImageBlock):
        return ImageContent(data=block.data, mime_type=block.mimeType)
    if isinstance(block, _AudioBlock):
        return AudioContent(data=block.data, mime_type=block.mimeType)
    resource = block.resource
    return ResourceContent(
        uri=resource.uri,
        mime_type=resource.mimeType,
        text=resource.text,
        blob=resource.blob,
    )


def parse_tool_result(payload: Any, server_name: str | None = None) -> ToolResult:
    """Validate a ``tools/call`` result and convert it to a ToolResult.

    Raises:
        MCPProtocolError: If the payload is not an array of content blocks.
    """
    try:
        parsed = _ToolCallResult.model_validate(payload)
    except ValidationError as e:
        raise MCPProtocolError(
            "Malformed tool result", server_name=server_name, original_error=e
        ) from e
    return ToolResult(
        content=tuple(_to_content_block(block) for block in parsed.content),
        is_error=parsed.isError,
    )


def parse_tool_list(payload: Any, server_name: str | None = None) -> list[ToolSchema]:
    """Validate a ``tools/list`` result.

    Raises:
        MCPProtocolError: If the payload is not a tool list.
    """
    try:
        parsed = _ToolList.model_validate(payload)
    except ValidationError as e:
        raise MCPProtocolError(
            "Malformed tool list", server_name=server_name, original_error=e
        ) from e
    return [
        ToolSchema(name=tool.name, description=tool.description, input_schema=tool.inputSchema)
        for tool in parsed.tools
    ]
