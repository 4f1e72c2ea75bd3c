"""Terminal tool provider: shell commands and dependency installs."""

import asyncio
import json
import logging
import os
import shlex
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from autodev.providers.base import StdioToolServer, ToolArgumentError, ToolHandler

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT_MS = 30000
INSTALL_TIMEOUT_MS = 60000


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int

    def to_dict(self) -> dict[str, Any]:
        return {"stdout": self.stdout, "stderr": self.stderr, "exitCode": self.exit_code}


async def execute_command(
    command: str,
    cwd: str | None = None,
    timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS,
) -> CommandResult:
    """
    Run a command through ``sh -c``.

    The command gets no stdin: the provider's stdin carries protocol frames.

    Raises:
        TimeoutError: If the command outlives ``timeout_ms``; it is killed first.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd or os.getcwd(),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_ms / 1000)
    except TimeoutError:
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        logger.warning(f"Command timed out after {timeout_ms}ms: {command}")
        raise TimeoutError(f"Command timed out after {timeout_ms}ms") from None

    return CommandResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=process.returncode or 0,
    )


class RunCommandTool(ToolHandler):
    name = "run_command"
    description = "Execute a shell command"
    parameters = {
        "command": {"type": "string", "description": "Command to execute"},
        "cwd": {"type": "string", "description": "Working directory"},
        "timeout": {"type": "number", "description": "Timeout in milliseconds"},
    }
    required = ("command",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        timeout = arguments.get("timeout") or DEFAULT_COMMAND_TIMEOUT_MS
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ToolArgumentError("timeout must be a positive number of milliseconds")
        result = await execute_command(arguments["command"], arguments.get("cwd"), timeout)
        return json.dumps(result.to_dict(), indent=2)


class InstallDependenciesTool(ToolHandler):
    name = "install_dependencies"
    description = "Install npm dependencies"
    parameters = {
        "cwd": {"type": "string", "description": "Project directory"},
        "package": {"type": "string", "description": "Specific package to install"},
    }
    required = ("cwd",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        package = arguments.get("package")
        command = f"npm install {shlex.quote(package)}" if package else "npm install"
        result = await execute_command(command, arguments["cwd"], INSTALL_TIMEOUT_MS)
        if result.exit_code != 0:
            raise RuntimeError(
                f"npm install exited with code {result.exit_code}: {result.stderr.strip()}"
            )
        return f"Dependencies installed: {result.stdout}"


def create_server() -> StdioToolServer:
    server = StdioToolServer("terminal-server")
    server.register(RunCommandTool())
    server.register(InstallDependenciesTool())
    return server


def main() -> None:
    create_server().run()


if __name__ == "__main__":
    main()
