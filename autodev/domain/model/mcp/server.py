"""
MCP Server Domain Models.

Defines the static server descriptor, the server lifecycle state, and
the outcome of starting a set of servers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ServerState(str, Enum):
    """Lifecycle state of a tool provider server."""

    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    EXITED = "exited"

    @property
    def is_live(self) -> bool:
        """Check if the server still owns a running process."""
        return self in (ServerState.STARTING, ServerState.READY)


@dataclass(frozen=True)
class ServerDescriptor:
    """
    Static configuration of one tool provider.

    Immutable once handed to the registry.
    """

    name: str
    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] | None = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Server name is required")
        if not self.command:
            raise ValueError(f"Command is required for server '{self.name}'")
        # Accept any sequence for args but store a tuple
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def command_line(self) -> str:
        """Get the full command line for logging."""
        return " ".join([self.command, *self.args])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "command": self.command,
            "args": list(self.args),
            "cwd": self.cwd,
            "env": self.env,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerDescriptor":
        """Create from dictionary (servers file format)."""
        return cls(
            name=data.get("name", ""),
            command=data.get("command", ""),
            args=tuple(str(a) for a in data.get("args", [])),
            cwd=data.get("cwd"),
            env=data.get("env"),
        )


@dataclass(frozen=True)
class ServerFailure:
    """A server that did not reach the ready state."""

    name: str
    error: str


@dataclass
class InitializeResult:
    """Outcome of starting a set of servers."""

    ready: list[str] = field(default_factory=list)
    failed: list[ServerFailure] = field(default_factory=list)

    @property
    def all_ready(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "ready": list(self.ready),
            "failed": [{"name": f.name, "error": f.error} for f in self.failed],
        }
