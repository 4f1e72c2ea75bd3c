"""Unit tests for StdioChannel request correlation.

The provider side is simulated with an in-memory StreamReader (the
provider's stdout) and a writer capturing what the channel sends.
"""

import asyncio
import json
import logging

import pytest

from autodev.domain.exceptions.mcp import (
    MCPChannelClosedError,
    MCPProtocolError,
    MCPRemoteError,
    MCPRequestTimeoutError,
)
from autodev.infrastructure.mcp.transport.framing import encode_frame
from autodev.infrastructure.mcp.transport.stdio import StdioChannel


class FakeWriter:
    """Captures bytes written to the provider's stdin."""

    def __init__(self):
        self.data = bytearray()
        self.closed = False
        self.fail_with: Exception | None = None

    def write(self, data: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass

    def frames(self) -> list[dict]:
        return [json.loads(line) for line in bytes(self.data).splitlines() if line.strip()]


async def wait_for_frames(writer: FakeWriter, count: int) -> list[dict]:
    """Yield to the loop until the channel has written ``count`` frames."""
    for _ in range(200):
        frames = writer.frames()
        if len(frames) >= count:
            return frames
        await asyncio.sleep(0)
    raise AssertionError(f"Expected {count} frames, got {writer.frames()}")


def respond(reader: asyncio.StreamReader, request_id, result=None, **extra) -> None:
    message = {"jsonrpc": "2.0", "id": request_id, **extra}
    if "error" not in extra:
        message["result"] = result if result is not None else {}
    reader.feed_data(encode_frame(message))


@pytest.fixture
async def pipe():
    """A started channel with its simulated provider streams."""
    reader = asyncio.StreamReader()
    writer = FakeWriter()
    channel = StdioChannel("test-server", reader, writer, default_timeout=2.0)
    channel.start()
    yield channel, reader, writer
    await channel.close()


class TestRequestCorrelation:
    """Tests for matching responses to requests."""

    @pytest.mark.asyncio
    async def test_response_resolves_request(self, pipe):
        """A response with the request's id resolves it."""
        # Arrange
        channel, reader, writer = pipe

        # Act
        task = asyncio.create_task(channel.send("tools/list"))
        (request,) = await wait_for_frames(writer, 1)
        respond(reader, request["id"], {"tools": []})
        result = await task

        # Assert
        assert request["method"] == "tools/list"
        assert request["jsonrpc"] == "2.0"
        assert result == {"tools": []}
        assert channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self, pipe):
        """Responses arriving in reverse order still reach their requests."""
        # Arrange
        channel, reader, writer = pipe
        first = asyncio.create_task(channel.send("first"))
        second = asyncio.create_task(channel.send("second"))
        frames = await wait_for_frames(writer, 2)
        ids = {frame["method"]: frame["id"] for frame in frames}

        # Act
        respond(reader, ids["second"], {"value": 2})
        respond(reader, ids["first"], {"value": 1})

        # Assert
        assert await first == {"value": 1}
        assert await second == {"value": 2}

    @pytest.mark.asyncio
    async def test_request_ids_are_unique(self, pipe):
        """Concurrent requests never share an id."""
        channel, reader, writer = pipe
        tasks = [asyncio.create_task(channel.send("ping")) for _ in range(10)]
        frames = await wait_for_frames(writer, 10)

        for frame in frames:
            respond(reader, frame["id"])
        await asyncio.gather(*tasks)

        assert len({frame["id"] for frame in frames}) == 10

    @pytest.mark.asyncio
    async def test_frame_split_across_reads(self, pipe):
        """A response delivered in several chunks is reassembled."""
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.send("ping"))
        (request,) = await wait_for_frames(writer, 1)
        data = encode_frame({"jsonrpc": "2.0", "id": request["id"], "result": {"ok": 1}})

        reader.feed_data(data[:7])
        await asyncio.sleep(0)
        reader.feed_data(data[7:])

        assert await task == {"ok": 1}

    @pytest.mark.asyncio
    async def test_error_response_raises_remote_error(self, pipe):
        """A JSON-RPC error response raises MCPRemoteError."""
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.send("tools/call"))
        (request,) = await wait_for_frames(writer, 1)

        respond(reader, request["id"], error={"code": -32602, "message": "bad params"})

        with pytest.raises(MCPRemoteError) as exc_info:
            await task
        assert exc_info.value.code == -32602
        assert "bad params" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_response_fails_its_request(self, pipe):
        """A response carrying both result and error fails the matching request."""
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.send("ping"))
        (request,) = await wait_for_frames(writer, 1)

        reader.feed_data(
            encode_frame({"id": request["id"], "result": {}, "error": {"message": "x"}})
        )

        with pytest.raises(MCPProtocolError):
            await task


class TestInvalidFrames:
    """Tests for frames that match nothing."""

    @pytest.mark.asyncio
    async def test_garbage_and_unmatched_frames_are_dropped(self, pipe, caplog):
        """Junk and unknown ids are logged and the channel keeps working."""
        # Arrange
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.send("ping"))
        (request,) = await wait_for_frames(writer, 1)

        # Act
        with caplog.at_level(logging.WARNING):
            reader.feed_data(b"this is not json\n")
            respond(reader, "unknown-id")
            respond(reader, 1)  # numeric ids never match string ids
            respond(reader, request["id"], {"ok": True})
            result = await task

        # Assert
        assert result == {"ok": True}
        assert not channel.is_closed
        assert "matches no pending request" in caplog.text

    @pytest.mark.asyncio
    async def test_oversized_frame_is_dropped(self):
        """Frames above the size limit are discarded without closing the channel."""
        reader = asyncio.StreamReader()
        writer = FakeWriter()
        channel = StdioChannel("test-server", reader, writer, max_frame_bytes=64)
        channel.start()
        try:
            task = asyncio.create_task(channel.send("ping"))
            (request,) = await wait_for_frames(writer, 1)

            reader.feed_data(encode_frame({"id": request["id"], "result": {"pad": "x" * 100}}))
            respond(reader, request["id"], {"ok": 1})

            assert await task == {"ok": 1}
        finally:
            await channel.close()

    @pytest.mark.asyncio
    async def test_provider_request_is_rejected(self, pipe):
        """Provider-initiated requests get a method-not-found error."""
        channel, reader, writer = pipe

        reader.feed_data(encode_frame({"jsonrpc": "2.0", "id": 99, "method": "roots/list"}))
        (reply,) = await wait_for_frames(writer, 1)

        assert reply["id"] == 99
        assert reply["error"]["code"] == -32601


class TestTimeouts:
    """Tests for request timeouts."""

    @pytest.mark.asyncio
    async def test_timeout_removes_pending_and_discards_late_response(self, pipe):
        """A timed-out request is forgotten and its late response ignored."""
        # Arrange
        channel, reader, writer = pipe

        # Act
        with pytest.raises(MCPRequestTimeoutError) as exc_info:
            await channel.send("slow", timeout=0.05)
        (request,) = writer.frames()
        respond(reader, request["id"], {"late": True})

        follow_up = asyncio.create_task(channel.send("ping"))
        frames = await wait_for_frames(writer, 2)
        respond(reader, frames[1]["id"], {"ok": True})

        # Assert
        assert exc_info.value.timeout == 0.05
        assert exc_info.value.method == "slow"
        assert await follow_up == {"ok": True}
        assert channel.pending_count == 0
        assert not channel.is_closed


class TestClosing:
    """Tests for channel closure."""

    @pytest.mark.asyncio
    async def test_eof_fails_pending_and_fires_lost_callback(self, pipe):
        """Provider EOF fails every pending request and reports the loss once."""
        # Arrange
        channel, reader, writer = pipe
        lost = []
        channel.add_lost_callback(lambda ch, reason: lost.append(reason))
        task = asyncio.create_task(channel.send("tools/call", tool_name="read_file"))
        await wait_for_frames(writer, 1)

        # Act
        reader.feed_eof()

        # Assert
        with pytest.raises(MCPChannelClosedError) as exc_info:
            await task
        assert "read_file" in str(exc_info.value)
        assert channel.is_closed
        assert len(lost) == 1

    @pytest.mark.asyncio
    async def test_close_fails_pending_requests(self, pipe):
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.send("ping"))
        await wait_for_frames(writer, 1)

        await channel.close("shutting down")

        with pytest.raises(MCPChannelClosedError):
            await task
        assert writer.closed

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, pipe):
        channel, _, _ = pipe

        await channel.close()
        await channel.close()

        assert channel.is_closed

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self, pipe):
        channel, _, writer = pipe
        await channel.close()

        with pytest.raises(MCPChannelClosedError):
            await channel.send("ping")
        assert writer.frames() == []

    @pytest.mark.asyncio
    async def test_write_failure_raises_channel_closed(self, pipe):
        channel, _, writer = pipe
        writer.fail_with = BrokenPipeError("pipe closed")

        with pytest.raises(MCPChannelClosedError):
            await channel.send("ping")
        assert channel.pending_count == 0

    @pytest.mark.asyncio
    async def test_lost_callback_not_fired_on_explicit_close(self, pipe):
        channel, reader, _ = pipe
        lost = []
        channel.add_lost_callback(lambda ch, reason: lost.append(reason))

        await channel.close()
        reader.feed_eof()
        await asyncio.sleep(0)

        assert lost == []


class TestMcpMethods:
    """Tests for the MCP-level helpers."""

    @pytest.mark.asyncio
    async def test_handshake_sends_initialize_then_initialized(self, pipe):
        # Arrange
        channel, reader, writer = pipe

        # Act
        task = asyncio.create_task(channel.handshake())
        (request,) = await wait_for_frames(writer, 1)
        respond(
            reader,
            request["id"],
            {"protocolVersion": "2024-11-05", "serverInfo": {"name": "fs", "version": "1"}},
        )
        server_info = await task
        frames = await wait_for_frames(writer, 2)

        # Assert
        assert request["method"] == "initialize"
        assert request["params"]["protocolVersion"] == "2024-11-05"
        assert request["params"]["clientInfo"]["name"] == "autodev-orchestrator"
        assert frames[1] == {
            "jsonrpc": "2.0",
            "method": "notifications/initialized",
            "params": {},
        }
        assert server_info == {"name": "fs", "version": "1"}
        assert channel.server_info == server_info

    @pytest.mark.asyncio
    async def test_call_tool_returns_tool_result(self, pipe):
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.call_tool("read_file", {"path": "a.txt"}))
        (request,) = await wait_for_frames(writer, 1)

        respond(
            reader,
            request["id"],
            {"content": [{"type": "text", "text": "Error: missing"}], "isError": True},
        )
        result = await task

        assert request["params"] == {"name": "read_file", "arguments": {"path": "a.txt"}}
        assert result.is_error
        assert result.text == "Error: missing"

    @pytest.mark.asyncio
    async def test_call_tool_rejects_malformed_result(self, pipe):
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.call_tool("read_file", {}))
        (request,) = await wait_for_frames(writer, 1)

        respond(reader, request["id"], {"content": "just a string"})

        with pytest.raises(MCPProtocolError):
            await task

    @pytest.mark.asyncio
    async def test_list_tools(self, pipe):
        channel, reader, writer = pipe
        task = asyncio.create_task(channel.list_tools())
        (request,) = await wait_for_frames(writer, 1)

        respond(reader, request["id"], {"tools": [{"name": "echo"}]})

        assert [tool.name for tool in await task] == ["echo"]

    @pytest.mark.asyncio
    async def test_ping_reports_failure_as_false(self, pipe):
        channel, _, _ = pipe

        assert await channel.ping(timeout=0.01) is False
