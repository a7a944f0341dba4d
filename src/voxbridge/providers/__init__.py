"""
Provider interfaces and implementations

This package contains:
1. Provider interfaces (base.py, conversational.py, telephony.py, llm.py, tts.py, stt.py)
2. Error normalization (errors.py) and the shared HTTP client (http.py)
3. Adapter catalog, registry and factory
4. Vendor adapters (elevenlabs, twilio, openai) and gateway passthrough adapters

Usage:
    from voxbridge.providers import ProviderFactory, ProviderCapability

    factory = ProviderFactory()
    if factory.supports("elevenlabs", ProviderCapability.CONVERSATIONAL_AI):
        provider = await factory.create_initialized("elevenlabs", {"api_key": key})
"""

# ============================================================
# Provider Interfaces
# ============================================================
from voxbridge.providers.base import BaseProvider, ProviderCapability
from voxbridge.providers.errors import (
    ProviderError,
    ProviderErrorKind,
    ProviderNotFoundError,
    NoProviderForCapabilityError,
    classify_status,
)
from voxbridge.providers.conversational import (
    ConversationalAIProvider,
    RemoteAgent,
    RemoteConversation,
    RecordingResult,
    RecordingStatus,
    RealtimeSession,
)
from voxbridge.providers.telephony import TelephonyProvider, PhoneNumber, OutboundCall
from voxbridge.providers.llm import LLMProvider
from voxbridge.providers.tts import TTSProvider, Voice
from voxbridge.providers.stt import STTProvider

# Registry and factory
from voxbridge.providers.registry import ProviderCatalog, ProviderRegistry, register_provider
from voxbridge.providers.factory import ProviderFactory, bootstrap_registry, expand_env_vars

# ============================================================
# Built-in adapters (registered in the catalog on import)
# ============================================================
from voxbridge.providers.elevenlabs import ElevenLabsProvider
from voxbridge.providers.twilio import TwilioProvider
from voxbridge.providers.openai import OpenAIProvider


__all__ = [
    # Interfaces
    "BaseProvider",
    "ProviderCapability",
    "ConversationalAIProvider",
    "TelephonyProvider",
    "LLMProvider",
    "TTSProvider",
    "STTProvider",
    # Records
    "RemoteAgent",
    "RemoteConversation",
    "RecordingResult",
    "RecordingStatus",
    "RealtimeSession",
    "PhoneNumber",
    "OutboundCall",
    "Voice",
    # Errors
    "ProviderError",
    "ProviderErrorKind",
    "ProviderNotFoundError",
    "NoProviderForCapabilityError",
    "classify_status",
    # Registry and factory
    "ProviderCatalog",
    "ProviderRegistry",
    "register_provider",
    "ProviderFactory",
    "bootstrap_registry",
    "expand_env_vars",
    # Adapters
    "ElevenLabsProvider",
    "TwilioProvider",
    "OpenAIProvider",
]
