"""Filesystem tool provider."""

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from autodev.providers.base import StdioToolServer, ToolHandler


def list_directory(path: str, recursive: bool = False) -> list[str]:
    """List a directory as joined paths; recursive listings follow each
    level's entries with the contents of its subdirectories."""
    names = sorted(os.listdir(path))
    entries = [os.path.join(path, name) for name in names]
    if recursive:
        for entry in list(entries):
            if os.path.isdir(entry) and not os.path.islink(entry):
                entries.extend(list_directory(entry, recursive=True))
    return entries


class ReadFileTool(ToolHandler):
    name = "read_file"
    description = "Read the contents of a file"
    parameters = {"path": {"type": "string", "description": "Path to the file"}}
    required = ("path",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        return await asyncio.to_thread(Path(arguments["path"]).read_text, encoding="utf-8")


class WriteFileTool(ToolHandler):
    name = "write_file"
    description = "Write content to a file"
    parameters = {
        "path": {"type": "string", "description": "Path to the file"},
        "content": {"type": "string", "description": "Content to write"},
    }
    required = ("path", "content")

    async def handle(self, arguments: dict[str, Any]) -> str:
        path = arguments["path"]
        await asyncio.to_thread(Path(path).write_text, str(arguments["content"]), encoding="utf-8")
        return f"File written: {path}"


class ListDirectoryTool(ToolHandler):
    name = "list_directory"
    description = "List contents of a directory"
    parameters = {
        "path": {"type": "string", "description": "Directory path"},
        "recursive": {"type": "boolean", "description": "List recursively"},
    }
    required = ("path",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        entries = await asyncio.to_thread(
            list_directory, arguments["path"], bool(arguments.get("recursive", False))
        )
        return json.dumps(entries, indent=2)


class CreateDirectoryTool(ToolHandler):
    name = "create_directory"
    description = "Create a directory"
    parameters = {"path": {"type": "string", "description": "Directory path to create"}}
    required = ("path",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        path = arguments["path"]
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)
        return f"Directory created: {path}"


def create_server() -> StdioToolServer:
    server = StdioToolServer("filesystem-server")
    for handler in (ReadFileTool(), WriteFileTool(), ListDirectoryTool(), CreateDirectoryTool()):
        server.register(handler)
    return server


def main() -> None:
    create_server().run()


if __name__ == "__main__":
    main()
