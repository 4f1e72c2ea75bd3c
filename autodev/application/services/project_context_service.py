"""
Project context aggregation.

Fans out to the filesystem and terminal providers and assembles a
ProjectContextSnapshot. Each call is either mandatory (its failure fails
the whole operation) or optional (its failure is logged and replaced by
a fallback value).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from autodev.domain.exceptions.mcp import MCPToolExecutionError
from autodev.domain.model.mcp.context import NO_REPOSITORY, ProjectContextSnapshot
from autodev.domain.model.mcp.tool import ToolResult
from autodev.domain.ports.mcp.tool_invoker_port import ToolInvokerPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextCall:
    """One tool call contributing a field of the snapshot."""

    key: str
    server_name: str
    tool_name: str
    build_arguments: Callable[[str], dict[str, Any]]
    decode: Callable[[ToolResult], Any]
    required: bool = False
    # Factory for the value used when an optional call fails
    fallback: Callable[[], Any] | None = None


def _decode_listing(result: ToolResult) -> Any:
    text = result.text
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _decode_manifest(result: ToolResult) -> dict[str, Any]:
    manifest = json.loads(result.text)
    if not isinstance(manifest, dict):
        raise ValueError("package.json is not a JSON object")
    return manifest


def _decode_git_status(result: ToolResult) -> str:
    """Extract porcelain output from a ``run_command`` result.

    A non-zero exit code means there is no usable repository.
    """
    text = result.text
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if not isinstance(payload, dict) or "stdout" not in payload:
        return text
    exit_code = payload.get("exitCode", 0)
    if exit_code not in (0, None):
        stderr = str(payload.get("stderr", "")).strip()
        raise ValueError(f"git exited with code {exit_code}: {stderr}")
    return str(payload.get("stdout", ""))


PROJECT_CONTEXT_CALLS: tuple[ContextCall, ...] = (
    ContextCall(
        key="file_structure",
        server_name="filesystem",
        tool_name="list_directory",
        build_arguments=lambda path: {"path": path, "recursive": True},
        decode=_decode_listing,
        required=True,
    ),
    ContextCall(
        key="package_manifest",
        server_name="filesystem",
        tool_name="read_file",
        build_arguments=lambda path: {"path": os.path.join(path, "package.json")},
        decode=_decode_manifest,
        fallback=dict,
    ),
    ContextCall(
        key="version_control_status",
        server_name="terminal",
        tool_name="run_command",
        build_arguments=lambda path: {"command": "git status --porcelain", "cwd": path},
        decode=_decode_git_status,
        fallback=lambda: NO_REPOSITORY,
    ),
)


class ProjectContextService:
    """
    Builds project context snapshots.

    Usage:
        service = ProjectContextService(invoker)
        snapshot = await service.get_project_context("/workspace/app")
    """

    def __init__(
        self,
        invoker: ToolInvokerPort,
        calls: tuple[ContextCall, ...] = PROJECT_CONTEXT_CALLS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._invoker = invoker
        self._calls = calls
        self._clock = clock or (lambda: datetime.now(UTC))

    async def get_project_context(self, path: str) -> ProjectContextSnapshot:
        """
        Assemble a snapshot of the project at ``path``.

        All calls run concurrently. When a mandatory call fails, the
        remaining calls are cancelled and its error propagates.

        Raises:
            MCPServerNotFoundError: If a mandatory call targets an unknown server.
            MCPServerNotConnectedError: If a mandatory call's server is not ready.
            MCPToolInvocationError: If a mandatory call fails in transport.
            MCPToolExecutionError: If a mandatory call returns an error result.
        """
        tasks = [
            asyncio.create_task(self._run(call, path), name=f"context-{call.key}")
            for call in self._calls
        ]
        try:
            values = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        fields = {call.key: value for call, value in zip(self._calls, values)}
        return ProjectContextSnapshot(timestamp=self._clock(), **fields)

    async def _run(self, call: ContextCall, path: str) -> Any:
        if call.required:
            return await self._invoke(call, path)
        try:
            return await self._invoke(call, path)
        except Exception as e:
            logger.warning(
                f"Optional context call {call.server_name}/{call.tool_name} "
                f"failed for '{path}', using fallback: {e}"
            )
            return call.fallback() if call.fallback else None

    async def _invoke(self, call: ContextCall, path: str) -> Any:
        result = await self._invoker.call_tool(
            call.server_name, call.tool_name, call.build_arguments(path)
        )
        if result.is_error:
            raise MCPToolExecutionError(
                call.tool_name,
                message=f"Tool '{call.tool_name}' on '{call.server_name}' failed: {result.text}",
                server_name=call.server_name,
            )
        return call.decode(result)
