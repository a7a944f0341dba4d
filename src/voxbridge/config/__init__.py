"""
Configuration management for voxbridge

Usage:
    from voxbridge.config import load_config, get_config, VoxbridgeConfig

    # Load from file
    config = load_config("config.yaml")

    # Get global config (auto-loads from .env and config.yaml)
    config = get_config()

    print(config.sync.dashboard_timeout_seconds)
    print(config.audio.storage_dir)
"""

from voxbridge.config.schema import (
    VoxbridgeConfig,
    SyncConfig,
    AudioConfig,
    HttpConfig,
    GatewayConfig,
    ProviderConfig,
)
from voxbridge.config.loader import (
    load_config,
    get_config,
    set_config,
    reload_config,
    VoxbridgeSettings,
)

__all__ = [
    # Schema
    "VoxbridgeConfig",
    "SyncConfig",
    "AudioConfig",
    "HttpConfig",
    "GatewayConfig",
    "ProviderConfig",
    # Loader
    "load_config",
    "get_config",
    "set_config",
    "reload_config",
    "VoxbridgeSettings",
]
