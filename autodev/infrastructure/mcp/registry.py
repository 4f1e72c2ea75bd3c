"""Server registry for tool provider processes.

The registry is the single owner of every server handle: it starts the
configured providers concurrently, tracks their state, retires servers
whose process dies, and tears everything down on cleanup.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from autodev.configuration.config import Settings, get_settings
from autodev.domain.exceptions.mcp import (
    MCPError,
    MCPServerError,
    MCPServerNotConnectedError,
    MCPServerNotFoundError,
    MCPServerSpawnError,
    MCPTransportError,
)
from autodev.domain.model.mcp.server import (
    InitializeResult,
    ServerDescriptor,
    ServerFailure,
    ServerState,
)
from autodev.domain.model.mcp.tool import ToolSchema
from autodev.infrastructure.mcp.process import ProcessHandle, ProcessSupervisor
from autodev.infrastructure.mcp.transport.stdio import StdioChannel

logger = logging.getLogger(__name__)


@dataclass
class ServerHandle:
    """One provider: its process, channel and lifecycle state."""

    name: str
    descriptor: ServerDescriptor
    state: ServerState = ServerState.STARTING
    process: ProcessHandle | None = None
    channel: StdioChannel | None = None
    tools: list[ToolSchema] = field(default_factory=list)
    server_info: dict[str, Any] | None = None
    error: str | None = None
    started_at: datetime | None = None

    @property
    def is_ready(self) -> bool:
        return (
            self.state == ServerState.READY
            and self.channel is not None
            and not self.channel.is_closed
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "command": self.descriptor.command_line,
            "state": self.state.value,
            "pid": self.process.pid if self.process else None,
            "tools": [tool.name for tool in self.tools],
            "server_info": self.server_info,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }


class ServerRegistry:
    """Authoritative table of tool provider servers, keyed by name.

    Usage:
        registry = ServerRegistry()
        result = await registry.initialize(descriptors)
        channel = registry.get_ready_channel("filesystem")
        ...
        await registry.cleanup()
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._supervisor = supervisor or ProcessSupervisor(
            stderr_tail_lines=self._settings.mcp_stderr_tail_lines
        )
        self._configured: dict[str, ServerDescriptor] = {}
        # Live handles (starting or ready); at most one per name
        self._handles: dict[str, ServerHandle] = {}
        # Last failed or exited handle per name, kept for diagnostics
        self._retired: dict[str, ServerHandle] = {}
        self._background: set[asyncio.Task] = set()
        self._shutting_down = False
        self._closed = False

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def is_configured(self, name: str) -> bool:
        return name in self._configured

    def get_handle(self, name: str) -> ServerHandle | None:
        """Get the live handle for a server, if any."""
        return self._handles.get(name)

    def get_ready_channel(self, name: str) -> StdioChannel:
        """Get the channel of a ready server.

        Raises:
            MCPServerNotFoundError: If the name was never configured.
            MCPServerNotConnectedError: If the server is not ready.
        """
        if name not in self._configured:
            raise MCPServerNotFoundError(name)
        if self._shutting_down:
            raise MCPServerNotConnectedError(
                name, f"MCP server '{name}' is not connected (registry is shut down)"
            )
        handle = self._handles.get(name)
        if handle is None or not handle.is_ready:
            state = self.get_state(name)
            raise MCPServerNotConnectedError(
                name,
                f"MCP server '{name}' is not connected (state: {state.value if state else 'not started'})",
            )
        return handle.channel

    def get_state(self, name: str) -> ServerState | None:
        handle = self._handles.get(name) or self._retired.get(name)
        return handle.state if handle else None

    def list_servers(self) -> list[dict[str, Any]]:
        """Describe every configured server, started or not."""
        servers = []
        for name, descriptor in self._configured.items():
            handle = self._handles.get(name) or self._retired.get(name)
            if handle is None:
                servers.append(
                    {"name": name, "command": descriptor.command_line, "state": None}
                )
            else:
                servers.append(handle.to_dict())
        return servers

    def list_tools(self, name: str) -> list[ToolSchema]:
        """Tools discovered for a live server at startup."""
        handle = self._handles.get(name)
        return list(handle.tools) if handle else []

    # -- Startup --

    async def initialize(self, descriptors: list[ServerDescriptor]) -> InitializeResult:
        """Start every listed server concurrently.

        Resolves once each server is ready or failed; one failure never
        stops the others.

        Returns:
            InitializeResult listing ready and failed servers.
        """
        self._shutting_down = False
        self._closed = False

        unique: dict[str, ServerDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in unique:
                logger.warning(f"Duplicate MCP server '{descriptor.name}' ignored")
                continue
            unique[descriptor.name] = descriptor
        self._configured.update(unique)

        outcomes = await asyncio.gather(
            *(self._start_server(descriptor) for descriptor in unique.values()),
            return_exceptions=True,
        )

        result = InitializeResult()
        for name, outcome in zip(unique, outcomes):
            if isinstance(outcome, BaseException):
                result.failed.append(ServerFailure(name=name, error=str(outcome) or repr(outcome)))
            else:
                result.ready.append(name)

        logger.info(
            f"MCP servers initialized: ready={result.ready} "
            f"failed={[failure.name for failure in result.failed]}"
        )
        return result

    async def _start_server(self, descriptor: ServerDescriptor) -> ServerHandle:
        name = descriptor.name
        existing = self._handles.get(name)
        if existing is not None:
            if existing.is_ready:
                logger.info(f"MCP server '{name}' already running")
                return existing
            raise MCPServerError(f"MCP server '{name}' is already starting")

        handle = ServerHandle(name=name, descriptor=descriptor)
        self._handles[name] = handle
        timeout = self._settings.mcp_startup_timeout

        try:
            handle.process = await self._supervisor.spawn(descriptor)
            channel = StdioChannel(
                name,
                handle.process.stdout,
                handle.process.stdin,
                default_timeout=self._settings.mcp_tool_call_timeout,
                max_frame_bytes=self._settings.mcp_max_frame_bytes,
            )
            handle.channel = channel
            channel.add_lost_callback(lambda _channel, reason: self._on_server_lost(handle, reason))
            handle.process.add_exit_callback(
                lambda _process, code: self._on_server_lost(
                    handle, f"process exited with code {code}"
                )
            )
            channel.start()

            handle.server_info = await channel.handshake(timeout=timeout)
            try:
                handle.tools = await channel.list_tools(timeout=timeout)
            except MCPTransportError as e:
                if channel.is_closed:
                    raise
                logger.warning(f"Tool discovery failed for MCP server '{name}': {e}")

            if self._shutting_down:
                raise MCPServerNotConnectedError(
                    name, f"MCP server '{name}' started during shutdown"
                )
        except BaseException as e:
            handle.state = ServerState.FAILED
            self._retire(handle)
            await self._dispose(handle, "startup failed")
            handle.error = self._describe_failure(handle, e)
            logger.error(f"Failed to start MCP server '{name}': {handle.error}")
            if isinstance(e, (MCPServerSpawnError, asyncio.CancelledError)):
                raise
            if isinstance(e, MCPError):
                raise MCPServerError(handle.error, original_error=e) from e
            raise

        handle.state = ServerState.READY
        handle.started_at = datetime.now(UTC)
        logger.info(
            f"MCP server '{name}' ready with {len(handle.tools)} tools: "
            f"{[tool.name for tool in handle.tools]}"
        )
        return handle

    @staticmethod
    def _describe_failure(handle: ServerHandle, error: BaseException) -> str:
        message = str(error) or type(error).__name__
        if handle.process is not None:
            stderr = handle.process.stderr_tail()
            if stderr:
                message += f"\nStderr: {stderr[-2000:]}"
        return message

    # -- Unexpected exit --

    def _on_server_lost(self, handle: ServerHandle, reason: str) -> None:
        """Retire a ready server whose process or stream went away."""
        if self._shutting_down or handle.state != ServerState.READY:
            return
        if self._handles.get(handle.name) is not handle:
            return

        stderr = handle.process.stderr_tail() if handle.process else ""
        logger.warning(
            f"MCP server '{handle.name}' exited unexpectedly: {reason}"
            + (f"\nStderr: {stderr}" if stderr else "")
        )
        handle.state = ServerState.EXITED
        handle.error = reason
        self._retire(handle)

        task = asyncio.create_task(self._dispose(handle, reason))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _retire(self, handle: ServerHandle) -> None:
        if self._handles.get(handle.name) is handle:
            del self._handles[handle.name]
        self._retired[handle.name] = handle

    async def _dispose(self, handle: ServerHandle, reason: str) -> None:
        """Close the channel then terminate the process, logging any error."""
        if handle.channel is not None:
            try:
                await handle.channel.close(reason)
            except Exception as e:
                logger.error(f"Error closing channel to MCP server '{handle.name}': {e}")
        if handle.process is not None:
            try:
                await handle.process.terminate(self._settings.mcp_terminate_grace_period)
            except Exception as e:
                logger.error(f"Error terminating MCP server '{handle.name}': {e}")

    # -- Shutdown --

    async def cleanup(self) -> None:
        """Close every channel, then terminate every process.

        Best-effort and idempotent: per-server errors are logged and the
        remaining servers are still shut down.
        """
        if self._closed or self._shutting_down:
            logger.debug("MCP server registry already cleaned up or shutting down")
            return

        self._shutting_down = True
        handles = list(self._handles.values())
        logger.info(f"Shutting down {len(handles)} MCP servers")

        for handle in handles:
            if handle.channel is None:
                continue
            try:
                await handle.channel.close("orchestrator shutting down")
            except Exception as e:
                logger.error(f"Error closing channel to MCP server '{handle.name}': {e}")

        for handle in handles:
            if handle.process is None:
                continue
            try:
                await handle.process.terminate(self._settings.mcp_terminate_grace_period)
            except Exception as e:
                logger.error(f"Error terminating MCP server '{handle.name}': {e}")

        for handle in handles:
            if handle.state == ServerState.READY:
                handle.state = ServerState.EXITED
                handle.error = "shut down"
            self._retire(handle)

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        self._closed = True
        logger.info("MCP server registry cleaned up")
