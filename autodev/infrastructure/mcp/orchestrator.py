"""
MCP orchestrator facade.

Wires the registry, the invoker and the project context service behind
the four operations the planning loop uses.
"""

import logging
from typing import Any

from autodev.application.services.project_context_service import ProjectContextService
from autodev.configuration.config import Settings, get_settings, load_server_descriptors
from autodev.domain.model.mcp.context import ProjectContextSnapshot
from autodev.domain.model.mcp.server import InitializeResult, ServerDescriptor
from autodev.domain.model.mcp.tool import ToolResult
from autodev.infrastructure.mcp.invoker import ToolInvoker
from autodev.infrastructure.mcp.registry import ServerRegistry

logger = logging.getLogger(__name__)


class MCPOrchestrator:
    """
    Entry point for tool provider orchestration.

    Usage:
        async with MCPOrchestrator() as orchestrator:
            result = await orchestrator.call_tool(
                "filesystem", "read_file", {"path": "README.md"}
            )
            snapshot = await orchestrator.get_project_context("/workspace/app")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        descriptors: list[ServerDescriptor] | None = None,
        registry: ServerRegistry | None = None,
    ) -> None:
        """
        Args:
            settings: Settings to use (defaults to cached settings).
            descriptors: Servers to start; loaded from settings when None.
            registry: Registry to use, mainly for tests.
        """
        self._settings = settings or get_settings()
        self._descriptors = descriptors
        self.registry = registry or ServerRegistry(settings=self._settings)
        self.invoker = ToolInvoker(self.registry)
        self.context_service = ProjectContextService(self.invoker)
        self.last_initialize_result: InitializeResult | None = None

    async def initialize(
        self, descriptors: list[ServerDescriptor] | None = None
    ) -> InitializeResult:
        """Start the configured servers; failures are reported, not raised."""
        if descriptors is None:
            descriptors = self._descriptors
        if descriptors is None:
            descriptors = load_server_descriptors(self._settings)

        result = await self.registry.initialize(descriptors)
        for failure in result.failed:
            logger.warning(f"MCP server '{failure.name}' unavailable: {failure.error}")
        self.last_initialize_result = result
        return result

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        return await self.invoker.call_tool(server_name, tool_name, arguments, timeout=timeout)

    async def get_project_context(self, path: str) -> ProjectContextSnapshot:
        return await self.context_service.get_project_context(path)

    def list_servers(self) -> list[dict[str, Any]]:
        return self.registry.list_servers()

    async def cleanup(self) -> None:
        """Shut down every server. Safe to call more than once."""
        await self.registry.cleanup()

    async def __aenter__(self) -> "MCPOrchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()
