"""Unit tests for the orchestrator CLI."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from autodev.cli.orchestrator_cli import build_parser, main
from autodev.domain.exceptions.mcp import MCPServerNotConnectedError
from autodev.domain.model.mcp.context import ProjectContextSnapshot
from autodev.domain.model.mcp.server import InitializeResult, ServerFailure
from autodev.domain.model.mcp.tool import ToolResult


@pytest.fixture
def mock_orchestrator():
    """Patch the orchestrator used by the CLI."""
    orchestrator = MagicMock()
    orchestrator.__aenter__ = AsyncMock(return_value=orchestrator)
    orchestrator.__aexit__ = AsyncMock(return_value=False)
    orchestrator.call_tool = AsyncMock(return_value=ToolResult.success("file contents"))
    orchestrator.last_initialize_result = InitializeResult(ready=["filesystem"])
    orchestrator.list_servers.return_value = [{"name": "filesystem", "state": "ready"}]
    with patch(
        "autodev.cli.orchestrator_cli.MCPOrchestrator", return_value=orchestrator
    ) as mock_class:
        orchestrator.mock_class = mock_class
        yield orchestrator


class TestParser:
    def test_call_arguments(self):
        args = build_parser().parse_args(
            ["--servers-file", "s.json", "call", "fs", "read_file", "--timeout", "2"]
        )

        assert args.servers_file == "s.json"
        assert args.command == "call"
        assert (args.server, args.tool, args.args, args.timeout) == ("fs", "read_file", "{}", 2.0)

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCall:
    def test_prints_result(self, mock_orchestrator, capsys):
        exit_code = main(["call", "filesystem", "read_file", "--args", '{"path": "a.txt"}'])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {
            "content": [{"type": "text", "text": "file contents"}],
            "isError": False,
        }
        mock_orchestrator.call_tool.assert_awaited_once_with(
            "filesystem", "read_file", {"path": "a.txt"}, timeout=None
        )

    def test_error_result_exits_one(self, mock_orchestrator):
        mock_orchestrator.call_tool.return_value = ToolResult.error("Error: ENOENT")

        assert main(["call", "filesystem", "read_file"]) == 1

    def test_infrastructure_failure_exits_two(self, mock_orchestrator, capsys):
        mock_orchestrator.call_tool.side_effect = MCPServerNotConnectedError("filesystem")

        assert main(["call", "filesystem", "read_file"]) == 2
        assert "is not connected" in capsys.readouterr().err

    @pytest.mark.parametrize("raw", ["{bad", "[1, 2]"])
    def test_invalid_arguments(self, mock_orchestrator, raw):
        with pytest.raises(SystemExit) as exc_info:
            main(["call", "filesystem", "read_file", "--args", raw])

        assert exc_info.value.code == 2
        mock_orchestrator.call_tool.assert_not_awaited()

    def test_servers_file_option(self, mock_orchestrator):
        main(["--servers-file", "/etc/servers.json", "call", "filesystem", "read_file"])

        settings = mock_orchestrator.mock_class.call_args.kwargs["settings"]
        assert settings.mcp_servers_file == "/etc/servers.json"


class TestServers:
    def test_lists_servers(self, mock_orchestrator, capsys):
        assert main(["servers"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["ready"] == ["filesystem"]
        assert output["servers"] == [{"name": "filesystem", "state": "ready"}]

    def test_failed_server_exits_one(self, mock_orchestrator):
        mock_orchestrator.last_initialize_result = InitializeResult(
            failed=[ServerFailure("web", "spawn failed")]
        )

        assert main(["servers"]) == 1


class TestContext:
    def test_prints_snapshot(self, mock_orchestrator, capsys):
        mock_orchestrator.get_project_context = AsyncMock(
            return_value=ProjectContextSnapshot(file_structure=["a"], version_control_status="")
        )

        assert main(["context", "/workspace/app"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["fileStructure"] == ["a"]
        assert output["versionControlStatus"] == ""
        mock_orchestrator.get_project_context.assert_awaited_once_with("/workspace/app")
