"""
Configuration Schema for voxbridge

Defines the structure of configuration using Pydantic models.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class ProviderConfig(BaseModel):
    """Process-wide adapter registered at startup"""
    type: str = Field(..., description="Vendor id in the provider catalog (e.g. elevenlabs)")
    enabled: bool = Field(default=True, description="Skip this adapter when False")
    config: Dict[str, Any] = Field(default_factory=dict, description="Credentials, ${VAR} expanded")


class GatewayConfig(BaseModel):
    """Meta-gateway passthrough configuration"""
    enabled: bool = Field(default=False, description="Register gateway adapters at startup")
    base_url: str = Field(default="https://api.picaos.com", description="Gateway base URL")
    secret_key: str = Field(default="", description="Gateway secret, ${VAR} expanded")
    connection_keys: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-vendor connection key (twilio, openai, elevenlabs)",
    )
    twilio_account_sid: str = Field(default="", description="Twilio account reached through the gateway")


class HttpConfig(BaseModel):
    """Vendor HTTP client configuration"""
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Attempts for transient failures")
    retry_delay: float = Field(default=1.0, description="Base delay for exponential backoff")


class AudioConfig(BaseModel):
    """Audio artifact store configuration"""
    storage_dir: str = Field(default="audio-storage", description="Directory for recordings")
    url_prefix: str = Field(default="/audio", description="Public playback path prefix")


class SyncConfig(BaseModel):
    """Synchronization engine configuration"""
    call_log_limit: int = Field(default=100, description="Default conversations per sync")
    include_transcripts: bool = Field(default=True, description="Fetch transcripts by default")
    dashboard_page_size: int = Field(default=50, description="Conversations per dashboard sync")
    dashboard_timeout_seconds: float = Field(default=60.0, description="Dashboard sync deadline")
    max_conversation_pages: int = Field(default=50, description="Pagination safety cap")
    audio_resync_max_retries: int = Field(default=3, description="Attempts per missing recording")
    audio_resync_retry_delay: float = Field(default=2.0, description="Linear backoff step in seconds")


class VoxbridgeConfig(BaseModel):
    """
    Main voxbridge configuration.

    This is the root configuration object that contains all settings.
    """
    sync: SyncConfig = Field(default_factory=SyncConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)

    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    model_config = ConfigDict(extra="allow")
