"""
Stdio transport channel for MCP.

Exchanges newline-delimited JSON-RPC messages with one provider process
over its stdin/stdout. Requests are correlated with responses strictly
by id, so a provider may answer out of order and several calls may be
in flight at once.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from autodev.domain.exceptions.mcp import (
    MCPChannelClosedError,
    MCPProtocolError,
    MCPRemoteError,
    MCPRequestTimeoutError,
)
from autodev.domain.model.mcp.tool import ToolResult, ToolSchema
from autodev.infrastructure.mcp.transport.framing import FrameDecoder, encode_frame
from autodev.infrastructure.mcp.transport.protocol import (
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    IncomingMessage,
    MessageKind,
    build_error_response,
    build_notification,
    build_request,
    decode_frame,
    parse_tool_list,
    parse_tool_result,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_READ_CHUNK_SIZE = 64 * 1024

# Ids of timed-out requests remembered to tell late responses from unknown ones
_EXPIRED_ID_HISTORY = 256

LostCallback = Callable[["StdioChannel", str], None]


@dataclass
class PendingRequest:
    """In-flight request awaiting its response."""

    id: str
    server_name: str
    method: str
    submitted_at: float
    future: asyncio.Future = field(repr=False)
    tool_name: str | None = None


class StdioChannel:
    """
    JSON-RPC channel over a provider's stdio streams.

    One read loop per channel resolves pending requests by id. Pending
    state is only touched from the event loop without awaiting in
    between, so lookups and removals never interleave with ``send``.

    Usage:
        channel = StdioChannel("filesystem", proc.stdout, proc.stdin)
        channel.start()
        await channel.handshake()
        result = await channel.call_tool("read_file", {"path": "README.md"})
        await channel.close()
    """

    def __init__(
        self,
        name: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        default_timeout: float = DEFAULT_TIMEOUT,
        max_frame_bytes: int = 16 * 1024 * 1024,
    ) -> None:
        """
        Args:
            name: Server name used in errors and logs.
            reader: Provider's stdout.
            writer: Provider's stdin.
            default_timeout: Timeout in seconds for requests without one.
            max_frame_bytes: Largest accepted incoming frame.
        """
        self.name = name
        self.default_timeout = default_timeout
        self._reader = reader
        self._writer = writer
        self._decoder = FrameDecoder(max_frame_bytes, on_oversized=self._on_oversized_frame)
        self._pending: dict[str, PendingRequest] = {}
        self._expired_ids: deque[str] = deque(maxlen=_EXPIRED_ID_HISTORY)
        self._request_id = 0
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task | None = None
        self._closed = False
        self._lost_callbacks: list[LostCallback] = []
        self.server_info: dict[str, Any] | None = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def add_lost_callback(self, callback: LostCallback) -> None:
        """Register a callback fired with (channel, reason) if the provider stream ends."""
        self._lost_callbacks.append(callback)

    def start(self) -> None:
        """Start the read loop."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._read_loop(), name=f"mcp-reader-{self.name}"
            )

    def _next_request_id(self) -> str:
        self._request_id += 1
        return str(self._request_id)

    # -- Requests --

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        tool_name: str | None = None,
    ) -> Any:
        """
        Send a request and wait for its response.

        Args:
            method: JSON-RPC method.
            params: Method parameters.
            timeout: Timeout in seconds (channel default if None).
            tool_name: Tool being called, for diagnostics.

        Returns:
            The response ``result`` payload.

        Raises:
            MCPRequestTimeoutError: If no response arrives in time.
            MCPChannelClosedError: If the channel is or becomes closed.
            MCPRemoteError: If the provider answers with an error.
            MCPProtocolError: If the matching response is malformed.
        """
        if self._closed:
            raise MCPChannelClosedError(
                f"Channel to '{self.name}' is closed", server_name=self.name
            )

        timeout = timeout if timeout is not None else self.default_timeout
        loop = asyncio.get_running_loop()
        request_id = self._next_request_id()
        pending = PendingRequest(
            id=request_id,
            server_name=self.name,
            method=method,
            submitted_at=loop.time(),
            future=loop.create_future(),
            tool_name=tool_name,
        )
        self._pending[request_id] = pending

        try:
            await self._write(build_request(request_id, method, params))
            logger.debug(f"Sent {method} (id={request_id}) to '{self.name}'")
            try:
                message: IncomingMessage = await asyncio.wait_for(pending.future, timeout=timeout)
            except TimeoutError:
                self._expired_ids.append(request_id)
                logger.warning(
                    f"MCP request '{method}' (id={request_id}) to '{self.name}' "
                    f"timed out after {timeout}s"
                )
                raise MCPRequestTimeoutError(self.name, method, timeout) from None
        finally:
            self._pending.pop(request_id, None)

        if message.error is not None:
            raise MCPRemoteError(
                f"MCP server '{self.name}' error: {message.error.message}",
                server_name=self.name,
                code=message.error.code,
                data=message.error.data,
            )
        return message.result

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification (no response expected)."""
        await self._write(build_notification(method, params))

    async def handshake(
        self,
        client_name: str = "autodev-orchestrator",
        client_version: str = "0.1.0",
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Perform the MCP initialize handshake.

        Returns:
            Server info reported by the provider.
        """
        result = await self.send(
            "initialize",
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": client_name, "version": client_version},
            },
            timeout=timeout,
        )
        server_info = result.get("serverInfo", {}) if isinstance(result, dict) else {}
        self.server_info = server_info
        await self.notify("notifications/initialized", {})
        logger.info(f"MCP server '{self.name}' initialized: {server_info}")
        return server_info

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolResult:
        """Call a tool and validate the result shape."""
        result = await self.send(
            "tools/call",
            {"name": tool_name, "arguments": arguments},
            timeout=timeout,
            tool_name=tool_name,
        )
        return parse_tool_result(result, self.name)

    async def list_tools(self, timeout: float | None = None) -> list[ToolSchema]:
        """List the tools declared by the provider."""
        result = await self.send("tools/list", {}, timeout=timeout)
        return parse_tool_list(result, self.name)

    async def ping(self, timeout: float | None = None) -> bool:
        """Check the provider answers requests."""
        try:
            await self.send("ping", {}, timeout=timeout)
            return True
        except (MCPChannelClosedError, MCPRequestTimeoutError, MCPRemoteError) as e:
            logger.debug(f"Ping to '{self.name}' failed: {e}")
            return False

    async def _write(self, message: dict[str, Any]) -> None:
        data = encode_frame(message)
        async with self._write_lock:
            if self._closed:
                raise MCPChannelClosedError(
                    f"Channel to '{self.name}' is closed", server_name=self.name
                )
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (OSError, RuntimeError) as e:
                raise MCPChannelClosedError(
                    f"Failed to write to '{self.name}'",
                    server_name=self.name,
                    original_error=e,
                ) from e

    # -- Incoming frames --

    async def _read_loop(self) -> None:
        """Read frames until the provider closes its output."""
        reason = "provider closed its output stream"
        try:
            while True:
                chunk = await self._reader.read(_READ_CHUNK_SIZE)
                if not chunk:
                    break
                for frame in self._decoder.feed(chunk):
                    self._dispatch(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error reading stdio for '{self.name}': {e}")
            reason = f"read failed: {e}"

        if not self._closed:
            logger.warning(f"Lost connection to MCP server '{self.name}': {reason}")
            self._fail_pending(reason)
            callbacks, self._lost_callbacks = self._lost_callbacks, []
            for callback in callbacks:
                try:
                    callback(self, reason)
                except Exception as e:
                    logger.error(f"Lost-connection callback for '{self.name}' failed: {e}")

    def _dispatch(self, frame: bytes) -> None:
        try:
            message = decode_frame(frame, self.name)
        except MCPProtocolError as e:
            pending = self._pop_pending(e.request_id)
            if pending is not None:
                pending.future.set_exception(e)
            else:
                logger.warning(f"Dropping frame from '{self.name}': {e}")
            return

        if message.kind is MessageKind.NOTIFICATION:
            logger.debug(f"Notification from '{self.name}': {message.method}")
            return

        if message.kind is MessageKind.REQUEST:
            self._reject_request(message)
            return

        pending = self._pop_pending(message.id)
        if pending is not None:
            pending.future.set_result(message)
        elif message.id in self._expired_ids:
            logger.debug(f"Discarding late response {message.id!r} from '{self.name}'")
        else:
            error = MCPProtocolError(
                f"Response id {message.id!r} matches no pending request",
                server_name=self.name,
                request_id=message.id,
            )
            logger.warning(f"Dropping frame from '{self.name}': {error}")

    def _pop_pending(self, request_id: Any) -> PendingRequest | None:
        if not isinstance(request_id, str):
            return None
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return None
        return pending

    def _reject_request(self, message: IncomingMessage) -> None:
        """Answer provider-initiated requests, which this client does not serve."""
        logger.debug(f"Rejecting request '{message.method}' from '{self.name}'")
        response = build_error_response(
            message.id, METHOD_NOT_FOUND, f"Method not found: {message.method}"
        )
        try:
            self._writer.write(encode_frame(response))
        except (OSError, RuntimeError) as e:
            logger.debug(f"Could not answer request from '{self.name}': {e}")

    def _on_oversized_frame(self, size: int) -> None:
        logger.warning(
            f"Dropping frame from '{self.name}': {size} bytes exceeds "
            f"limit of {self._decoder.max_frame_bytes} bytes"
        )

    # -- Shutdown --

    def _fail_pending(self, reason: str) -> None:
        self._closed = True
        pending, self._pending = self._pending, {}
        for request in pending.values():
            if not request.future.done():
                request.future.set_exception(
                    MCPChannelClosedError(
                        f"Channel to '{self.name}' closed ({reason}) while "
                        f"'{request.tool_name or request.method}' was pending",
                        server_name=self.name,
                    )
                )

    async def close(self, reason: str = "channel closed") -> None:
        """Close the channel, failing every pending request. Idempotent."""
        if not self._closed:
            logger.debug(f"Closing channel to '{self.name}': {reason}")
            self._fail_pending(reason)

        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        if not self._writer.is_closing():
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (OSError, RuntimeError) as e:
                logger.debug(f"Error closing stdin of '{self.name}': {e}")
