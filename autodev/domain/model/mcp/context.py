"""
Project context snapshot value object.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

# Version control status used when no repository could be inspected.
# A clean repository reports an empty porcelain status, so this must differ from "".
NO_REPOSITORY = "<no-repository>"


@dataclass(frozen=True)
class ProjectContextSnapshot:
    """
    Point-in-time view of a project assembled from several tool calls.

    Built once per request and never cached. A listing is stored as a
    tuple and the manifest behind a read-only mapping; nested manifest
    values are shared with the decoded payload.
    """

    file_structure: Any
    package_manifest: Mapping[str, Any] = field(default_factory=dict)
    version_control_status: str = NO_REPOSITORY
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.file_structure, list):
            object.__setattr__(self, "file_structure", tuple(self.file_structure))
        object.__setattr__(
            self, "package_manifest", MappingProxyType(dict(self.package_manifest))
        )

    @property
    def has_repository(self) -> bool:
        return self.version_control_status != NO_REPOSITORY

    def to_dict(self) -> dict[str, Any]:
        file_structure = self.file_structure
        if isinstance(file_structure, tuple):
            file_structure = list(file_structure)
        return {
            "fileStructure": file_structure,
            "packageManifest": dict(self.package_manifest),
            "versionControlStatus": self.version_control_status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
