"""
Core module initialization.
Exports configuration and logging utilities.
"""

from pojang.core.config import (
    get_settings,
    get_logger,
    setup_logging,
    Settings,
    EnvironmentMode,
    ImageStorageBackend,
)

__all__ = [
    "get_settings",
    "get_logger",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "ImageStorageBackend",
]
