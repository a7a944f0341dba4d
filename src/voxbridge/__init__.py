"""
Voxbridge - vendor abstraction and sync engine for voice-agent platforms

Design philosophy:
- Provider: one adapter per vendor, implementing one or more capability interfaces
- Registry: process-wide lookup of initialized adapters by id or capability
- Factory: per-integration adapters built from tenant credentials
- Sync: idempotent mirroring of remote agents, conversations and recordings

Supported Providers:
- Conversational AI: ElevenLabs
- Telephony: Twilio, ElevenLabs
- LLM / STT: OpenAI
- TTS: ElevenLabs
- Gateway passthrough (Twilio, OpenAI, ElevenLabs)
"""

__version__ = "0.1.0"

# Configure logger on import (auto-configuration in utils.logger_config)
import voxbridge.utils.logger_config  # noqa: F401

from voxbridge.providers import (
    BaseProvider,
    ProviderCapability,
    ProviderError,
    ProviderErrorKind,
    ProviderFactory,
    ProviderRegistry,
    bootstrap_registry,
)
from voxbridge.storage import InMemoryStorage, SyncStorage
from voxbridge.audio import AudioArtifactStore, AudioFetchPipeline
from voxbridge.sync import SyncEngine, SyncResult, DashboardSyncResult, FullSyncResult
from voxbridge.context import AppContext, create_context

__all__ = [
    # Version
    "__version__",
    # Providers
    "BaseProvider",
    "ProviderCapability",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderFactory",
    "ProviderRegistry",
    "bootstrap_registry",
    # Storage
    "SyncStorage",
    "InMemoryStorage",
    # Audio
    "AudioArtifactStore",
    "AudioFetchPipeline",
    # Sync
    "SyncEngine",
    "SyncResult",
    "DashboardSyncResult",
    "FullSyncResult",
    # Wiring
    "AppContext",
    "create_context",
]
