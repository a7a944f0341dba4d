"""
Utility helpers
"""

from voxbridge.utils.logger_config import (
    configure_logger,
    reset_logger,
    is_file_logging_enabled,
)

__all__ = [
    "configure_logger",
    "reset_logger",
    "is_file_logging_enabled",
]
