"""
Stdio tool provider base.

A provider is a standalone process that:
1. Reads JSON-RPC requests from stdin, one per line
2. Dispatches ``tools/call`` to registered ToolHandlers
3. Writes JSON-RPC responses to stdout, one per line

Requests are served concurrently, so responses may be written out of
order. Logging goes to stderr; stdout carries protocol frames only.

To create a provider:

    class EchoTool(ToolHandler):
        name = "echo"
        description = "Echo the input"
        parameters = {"text": {"type": "string", "description": "Text to echo"}}
        required = ("text",)

        async def handle(self, arguments: dict) -> str:
            return arguments["text"]

    if __name__ == "__main__":
        server = StdioToolServer("echo-server")
        server.register(EchoTool())
        server.run()
"""

import asyncio
import json
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from autodev.configuration.config import configure_logging
from autodev.infrastructure.mcp.transport.framing import encode_frame
from autodev.infrastructure.mcp.transport.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    build_error_response,
)

logger = logging.getLogger(__name__)


class ToolArgumentError(ValueError):
    """Raised when a tool is called with missing or invalid arguments."""


class ToolHandler(ABC):
    """
    Base class for a tool implementation.

    Subclasses define what a tool does; the server handles transport.
    Raising from ``handle`` produces an ``isError`` result.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, dict] = {}
    required: tuple[str, ...] = ()

    @abstractmethod
    async def handle(self, arguments: dict[str, Any]) -> str:
        """
        Execute the tool.

        Args:
            arguments: Validated tool arguments.

        Returns:
            Result text.
        """
        ...

    def get_schema(self) -> dict[str, Any]:
        """Return the tool declaration for ``tools/list``."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": self.parameters,
                "required": list(self.required),
            },
        }

    def validate(self, arguments: Any) -> dict[str, Any]:
        if not isinstance(arguments, dict):
            raise ToolArgumentError("Arguments must be an object")
        missing = [name for name in self.required if arguments.get(name) is None]
        if missing:
            raise ToolArgumentError(f"Missing required argument: {', '.join(missing)}")
        return arguments


def text_result(text: str, is_error: bool = False) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


class StdioToolServer:
    """
    JSON-RPC tool provider over stdin/stdout.

    Methods:
        - "initialize" → server info and capabilities
        - "tools/list" → registered tool declarations
        - "tools/call" → result content, ``isError`` on tool failure
        - "ping"       → empty result
    """

    def __init__(self, name: str, version: str = "0.1.0") -> None:
        self.name = name
        self.version = version
        self._handlers: dict[str, ToolHandler] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def tools(self) -> list[str]:
        return list(self._handlers)

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler
        logger.debug(f"Registered tool: {handler.name}")

    async def initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo", {})
        logger.info(f"{self.name} initialized by {client.get('name', 'unknown client')}")
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "serverInfo": {"name": self.name, "version": self.version},
            "capabilities": {"tools": {}},
        }

    async def list_tools(self) -> dict[str, Any]:
        return {"tools": [handler.get_schema() for handler in self._handlers.values()]}

    async def call_tool(self, name: str, arguments: Any) -> dict[str, Any]:
        """Run a tool; every tool failure becomes an ``isError`` result."""
        handler = self._handlers.get(name)
        if handler is None:
            return text_result(f"Error: Unknown tool: {name}", is_error=True)

        try:
            text = await handler.handle(handler.validate(arguments or {}))
        except Exception as e:
            logger.error(f"Tool '{name}' failed: {e}")
            return text_result(f"Error: {e}", is_error=True)
        return text_result(text)

    async def handle_request(self, request: Any) -> dict[str, Any] | None:
        """Dispatch one decoded message and build its response.

        Returns None for notifications.
        """
        if not isinstance(request, dict):
            return build_error_response(None, INVALID_REQUEST, "Request must be an object")

        method = request.get("method")
        params = request.get("params") or {}
        request_id = request.get("id")

        # Notifications (no id) don't require a response
        if request_id is None:
            if method:
                logger.debug(f"Notification: {method}")
            return None

        try:
            if method == "initialize":
                result = await self.initialize(params)
            elif method == "tools/list":
                result = await self.list_tools()
            elif method == "tools/call":
                result = await self.call_tool(params.get("name", ""), params.get("arguments", {}))
            elif method == "ping":
                result = {}
            else:
                return build_error_response(
                    request_id, METHOD_NOT_FOUND, f"Method not found: {method}"
                )
        except Exception as e:
            logger.error(f"Error handling '{method}': {e}", exc_info=True)
            return build_error_response(request_id, INTERNAL_ERROR, str(e))

        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    async def serve(
        self,
        readline: Callable[[], Any] | None = None,
        write: Callable[[bytes], None] | None = None,
    ) -> None:
        """
        Main loop: serve requests until stdin is closed.

        Args:
            readline: Blocking line reader (defaults to stdin).
            write: Frame writer (defaults to stdout).
        """
        readline = readline or sys.stdin.buffer.readline
        write = write or self._write_stdout
        logger.info(f"{self.name} serving {len(self._handlers)} tools: {self.tools}")

        while True:
            line = await asyncio.to_thread(readline)
            if not line:
                break
            if not line.strip():
                continue

            try:
                request = json.loads(line)
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                write(encode_frame(build_error_response(None, PARSE_ERROR, f"Parse error: {e}")))
                continue

            task = asyncio.create_task(self._respond(request, write))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info(f"{self.name} input closed, exiting")

    async def _respond(self, request: Any, write: Callable[[bytes], None]) -> None:
        response = await self.handle_request(request)
        if response is not None:
            write(encode_frame(response))

    @staticmethod
    def _write_stdout(data: bytes) -> None:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()

    def run(self) -> None:
        """Configure logging and serve until stdin closes."""
        configure_logging()
        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            pass
