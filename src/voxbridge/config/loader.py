"""
Configuration Loader for voxbridge

Loads configuration from multiple sources with priority:
1. Environment variables (.env + VOXBRIDGE_XXX)
2. YAML config file
3. Default values (lowest)
"""

from pathlib import Path
from typing import Optional, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from ruamel.yaml import YAML
from loguru import logger

from voxbridge.config.schema import VoxbridgeConfig


class VoxbridgeSettings(BaseSettings):
    """
    Environment-based settings with VOXBRIDGE_ prefix.

    Reads from:
    1. Environment variables (VOXBRIDGE_XXX)
    2. .env file in current directory

    Example:
        VOXBRIDGE_LOG_LEVEL=DEBUG
        VOXBRIDGE_AUDIO_STORAGE_DIR=/var/lib/voxbridge/audio
    """

    config_file: Optional[str] = "config.yaml"

    log_level: Optional[str] = None
    log_file: Optional[str] = None

    audio_storage_dir: Optional[str] = None
    dashboard_timeout_seconds: Optional[float] = None
    http_timeout: Optional[float] = None

    model_config = SettingsConfigDict(
        env_prefix="VOXBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_settings: Optional[VoxbridgeSettings] = None,
) -> VoxbridgeConfig:
    """
    Load voxbridge configuration.

    Args:
        config_path: Path to YAML config file. If None, uses VOXBRIDGE_CONFIG_FILE
                     env var or defaults to "config.yaml". An explicit path
                     that does not exist raises FileNotFoundError.
        env_settings: Pre-loaded environment settings

    Returns:
        VoxbridgeConfig instance
    """
    explicit_path = config_path is not None

    if env_settings is None:
        env_settings = VoxbridgeSettings()

    if config_path is None:
        config_path = env_settings.config_file

    config_data = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            yaml = YAML(typ="safe")
            with open(path, "r", encoding="utf-8") as f:
                yaml_config = yaml.load(f)
            if yaml_config:
                config_data = yaml_config
                logger.debug(f"Loaded config from {path}")
        elif explicit_path:
            raise FileNotFoundError(f"Config file not found: {path}")

    config = VoxbridgeConfig(**config_data)

    # Environment overrides
    if env_settings.log_level:
        config.log_level = env_settings.log_level
    if env_settings.log_file:
        config.log_file = env_settings.log_file
    if env_settings.audio_storage_dir:
        config.audio.storage_dir = env_settings.audio_storage_dir
    if env_settings.dashboard_timeout_seconds is not None:
        config.sync.dashboard_timeout_seconds = env_settings.dashboard_timeout_seconds
    if env_settings.http_timeout is not None:
        config.http.timeout = env_settings.http_timeout

    return config


# ============================================================
# Global config management
# ============================================================

_global_config: Optional[VoxbridgeConfig] = None


def get_config() -> VoxbridgeConfig:
    """Get global config (lazy load from .env and config.yaml)."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: VoxbridgeConfig) -> None:
    """Set global config manually"""
    global _global_config
    _global_config = config


def reload_config() -> VoxbridgeConfig:
    """Force reload config from files"""
    global _global_config
    _global_config = load_config()
    return _global_config
