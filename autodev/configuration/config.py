"""Configuration management for the tool orchestrator."""

import json
import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autodev.domain.model.mcp.server import ServerDescriptor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logical names of the bundled providers, in start order
BUILTIN_PROVIDERS = ("filesystem", "terminal", "web")


class Settings(BaseSettings):
    """Application settings."""

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # MCP Timeouts (seconds)
    mcp_tool_call_timeout: float = Field(default=30.0, alias="MCP_TOOL_CALL_TIMEOUT")
    mcp_startup_timeout: float = Field(default=30.0, alias="MCP_STARTUP_TIMEOUT")
    mcp_terminate_grace_period: float = Field(default=5.0, alias="MCP_TERMINATE_GRACE_PERIOD")

    # MCP Transport
    # 16MB frames to handle base64 encoded payloads
    mcp_max_frame_bytes: int = Field(default=16 * 1024 * 1024, alias="MCP_MAX_FRAME_BYTES")
    mcp_stderr_tail_lines: int = Field(default=50, alias="MCP_STDERR_TAIL_LINES")

    # Server descriptors file (JSON); bundled providers are used when unset
    mcp_servers_file: str | None = Field(default=None, alias="MCP_SERVERS_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str | None) -> str:
        """Normalize log level names from environment."""
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got '{value}'")
        return normalized

    @field_validator(
        "mcp_tool_call_timeout",
        "mcp_startup_timeout",
        "mcp_terminate_grace_period",
    )
    @classmethod
    def validate_positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts must be positive")
        return value

    @field_validator("mcp_max_frame_bytes", "mcp_stderr_tail_lines")
    @classmethod
    def validate_positive_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Sizes must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def builtin_server_descriptors() -> list[ServerDescriptor]:
    """Descriptors for the bundled providers, run with the current interpreter."""
    return [
        ServerDescriptor(
            name=name,
            command=sys.executable,
            args=("-m", f"autodev.providers.{name}"),
        )
        for name in BUILTIN_PROVIDERS
    ]


def parse_server_descriptors(data: Any) -> list[ServerDescriptor]:
    """
    Parse descriptors from decoded JSON.

    Accepts either a list of descriptor objects or an object with a
    ``servers`` list.
    """
    if isinstance(data, dict):
        data = data.get("servers")
    if not isinstance(data, list):
        raise ValueError("Servers file must contain a list of servers or a 'servers' list")
    return [ServerDescriptor.from_dict(item) for item in data]


def load_server_descriptors(settings: Settings | None = None) -> list[ServerDescriptor]:
    """
    Load the configured server descriptors.

    Args:
        settings: Settings to read ``mcp_servers_file`` from (defaults to cached settings)

    Returns:
        Descriptors from the servers file, or the bundled providers.

    Raises:
        ValueError: If the servers file is malformed.
        OSError: If the servers file cannot be read.
    """
    settings = settings or get_settings()
    if not settings.mcp_servers_file:
        return builtin_server_descriptors()

    path = Path(settings.mcp_servers_file)
    logger.info(f"Loading MCP server descriptors from {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in servers file {path}: {e}") from e
    return parse_server_descriptors(data)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for entry points."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
