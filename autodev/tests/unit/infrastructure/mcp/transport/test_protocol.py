"""Unit tests for protocol message validation."""

import pytest

from autodev.domain.exceptions.mcp import MCPProtocolError
from autodev.domain.model.mcp.tool import (
    AudioContent,
    ImageContent,
    ResourceContent,
    TextContent,
)
from autodev.infrastructure.mcp.transport.protocol import (
    MessageKind,
    build_notification,
    build_request,
    decode_frame,
    parse_tool_list,
    parse_tool_result,
)


class TestBuilders:
    def test_request_defaults_params(self):
        assert build_request("1", "tools/list", None) == {
            "jsonrpc": "2.0",
            "id": "1",
            "method": "tools/list",
            "params": {},
        }

    def test_notification_has_no_id(self):
        message = build_notification("notifications/initialized", {})

        assert "id" not in message
        assert message["method"] == "notifications/initialized"


class TestDecodeFrame:
    def test_result_response(self):
        message = decode_frame(b'{"jsonrpc":"2.0","id":"7","result":{"ok":true}}')

        assert message.kind is MessageKind.RESPONSE
        assert message.id == "7"
        assert message.result == {"ok": True}
        assert not message.is_error

    def test_error_response(self):
        message = decode_frame(
            b'{"jsonrpc":"2.0","id":"7","error":{"code":-32601,"message":"nope"}}'
        )

        assert message.is_error
        assert message.error.code == -32601
        assert message.error.message == "nope"

    def test_notification(self):
        message = decode_frame(b'{"jsonrpc":"2.0","method":"notifications/progress"}')

        assert message.kind is MessageKind.NOTIFICATION

    def test_provider_request(self):
        message = decode_frame(b'{"jsonrpc":"2.0","id":1,"method":"sampling/createMessage"}')

        assert message.kind is MessageKind.REQUEST
        assert message.id == 1

    @pytest.mark.parametrize(
        "frame",
        [
            b"not json",
            b"\xff\xfe",
            b"[1,2,3]",
            b'{"jsonrpc":"2.0","method":5}',
            b'{"jsonrpc":"2.0","result":{}}',
        ],
    )
    def test_malformed_frames(self, frame):
        with pytest.raises(MCPProtocolError) as exc_info:
            decode_frame(frame, "fs")

        assert exc_info.value.server_name == "fs"
        assert exc_info.value.request_id is None

    def test_response_with_both_result_and_error_keeps_id(self):
        with pytest.raises(MCPProtocolError) as exc_info:
            decode_frame(b'{"id":"3","result":{},"error":{"message":"x"}}')

        assert exc_info.value.request_id == "3"

    def test_malformed_error_payload_keeps_id(self):
        with pytest.raises(MCPProtocolError) as exc_info:
            decode_frame(b'{"id":"4","error":{"code":1}}')

        assert exc_info.value.request_id == "4"


class TestParseToolResult:
    def test_all_content_kinds(self):
        result = parse_tool_result(
            {
                "content": [
                    {"type": "text", "text": "hi"},
                    {"type": "image", "data": "aW1n", "mimeType": "image/png"},
                    {"type": "audio", "data": "YXVk", "mimeType": "audio/wav"},
                    {"type": "resource", "resource": {"uri": "file:///a", "text": "a"}},
                ],
                "isError": False,
            }
        )

        assert result.content == (
            TextContent(text="hi"),
            ImageContent(data="aW1n", mime_type="image/png"),
            AudioContent(data="YXVk", mime_type="audio/wav"),
            ResourceContent(uri="file:///a", text="a"),
        )

    def test_is_error_defaults_to_false(self):
        result = parse_tool_result({"content": [{"type": "text", "text": "x"}]})

        assert result.is_error is False

    def test_is_error_flag(self):
        result = parse_tool_result({"content": [], "isError": True})

        assert result.is_error is True
        assert result.content == ()

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "plain string",
            {"content": "not a list"},
            {"content": [{"type": "video", "url": "x"}]},
            {"content": [{"type": "text"}]},
        ],
    )
    def test_malformed_results(self, payload):
        with pytest.raises(MCPProtocolError):
            parse_tool_result(payload, "fs")


class TestParseToolList:
    def test_tool_declarations(self):
        tools = parse_tool_list(
            {"tools": [{"name": "read_file", "inputSchema": {"type": "object"}}]}
        )

        assert tools[0].name == "read_file"
        assert tools[0].input_schema == {"type": "object"}

    def test_malformed_list(self):
        with pytest.raises(MCPProtocolError):
            parse_tool_list({"tools": [{"description": "no name"}]})
