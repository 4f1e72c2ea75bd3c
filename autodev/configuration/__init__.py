from autodev.configuration.config import (
    Settings,
    builtin_server_descriptors,
    configure_logging,
    get_settings,
    load_server_descriptors,
)

__all__ = [
    "Settings",
    "get_settings",
    "builtin_server_descriptors",
    "load_server_descriptors",
    "configure_logging",
]
