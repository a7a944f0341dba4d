"""
Loguru configuration for voxbridge

Provides centralized logger configuration with:
- File logging to logs/ directory (when VOXBRIDGE_LOG_MODE=file)
- Console output
- Automatic log rotation
- Default INFO level

Log Mode Control:
    Set environment variable VOXBRIDGE_LOG_MODE to control file logging:
    - VOXBRIDGE_LOG_MODE=file: Enable file logging
    - VOXBRIDGE_LOG_MODE=none or not set: Console only (default)
"""

import os
import sys
from pathlib import Path
from typing import Optional, List
from loguru import logger


LOG_MODE_ENV = "VOXBRIDGE_LOG_MODE"
LOG_MODE_FILE = "file"

# Placeholder shown for log lines emitted outside any tenant sync
NO_ORG = "--------"

_configured = False


def is_file_logging_enabled() -> bool:
    """
    Check if file logging is enabled via environment variable.

    Returns:
        True if VOXBRIDGE_LOG_MODE=file, False otherwise
    """
    return os.environ.get(LOG_MODE_ENV, "").lower() == LOG_MODE_FILE


def configure_logger(
    log_dir: str = "logs",
    level: str = "INFO",
    rotation: str = "100 MB",
    retention: str = "30 days",
    console_level: Optional[str] = None,
    file_level: Optional[str] = None,
    debug_components: Optional[List[str]] = None,
) -> None:
    """
    Configure loguru logger with file and console outputs.

    Args:
        log_dir: Directory for log files (default: "logs")
        level: Default log level (default: "INFO")
        rotation: When to rotate log files (default: "100 MB")
        retention: How long to keep log files (default: "30 days")
        console_level: Console log level (default: same as level)
        file_level: File log level (default: same as level)
        debug_components: Component names to enable DEBUG output for
                         (e.g., ["SyncEngine", "AudioFetchPipeline"])

    Example:
        >>> from voxbridge.utils.logger_config import configure_logger
        >>> configure_logger(level="DEBUG")
        >>> configure_logger(level="INFO", debug_components=["elevenlabs"])
    """
    global _configured

    if _configured:
        logger.warning("Logger already configured, skipping reconfiguration")
        return

    logger.remove()

    # org_id is rebound per sync pass
    logger.configure(extra={"org_id": NO_ORG})

    console_level = console_level or level
    file_level = file_level or level
    debug_components = debug_components or []

    def make_component_filter(min_level_name: str):
        """
        Create a filter function for component-specific DEBUG.

        Args:
            min_level_name: Minimum level for non-debug components (e.g., "INFO")

        Returns:
            Filter function for loguru handler
        """
        def component_filter(record):
            # Prefix match: "SyncEngine" matches "SyncEngine-org_1"
            component_name = record["extra"].get("component") or ""
            is_debug_component = any(
                component_name.startswith(prefix) for prefix in debug_components
            )

            if is_debug_component:
                return True

            if debug_components:
                # Handler level is DEBUG, enforce the global minimum here
                min_level_no = logger.level(min_level_name).no
                return record["level"].no >= min_level_no

            return True

        return component_filter

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
               "<level>{level: <8}</level> | "
               "<yellow>[{extra[org_id]}]</yellow> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
               "<level>{message}</level>",
        level="DEBUG" if debug_components else console_level,
        filter=make_component_filter(console_level),
        colorize=True,
    )

    file_logging_enabled = is_file_logging_enabled()
    if file_logging_enabled:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        log_file = log_path / "voxbridge_{time:YYYY-MM-DD}.log"
        logger.add(
            str(log_file),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | [{extra[org_id]}] | {name}:{function}:{line} | {message}",
            level="DEBUG" if debug_components else file_level,
            filter=make_component_filter(file_level),
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
        )

    _configured = True

    debug_info = f" (DEBUG components: {', '.join(debug_components)})" if debug_components else ""
    file_info = f", file={file_level}, log_dir={log_dir}" if file_logging_enabled else " (file logging disabled)"
    logger.info(f"Logger configured: console={console_level}{file_info}{debug_info}")


def reset_logger() -> None:
    """
    Reset logger configuration flag.

    This allows reconfiguration by calling configure_logger() again.
    """
    global _configured
    _configured = False
    logger.remove()


def auto_configure():
    """Auto-configure logger on module import with default settings."""
    # Skip auto-config under pytest
    if "pytest" in sys.modules:
        return

    if not _configured:
        try:
            configure_logger()
        except Exception as e:
            print(f"Warning: Failed to configure logger: {e}", file=sys.stderr)


auto_configure()
