"""
ElevenLabs adapter

Providers:
- ElevenLabsProvider: conversational agents, TTS and telephony bridge
"""

from voxbridge.providers.elevenlabs.provider import ElevenLabsProvider
from voxbridge.providers.elevenlabs.payload import parse_agent, parse_conversation, sanitize_api_key

__all__ = [
    "ElevenLabsProvider",
    "parse_agent",
    "parse_conversation",
    "sanitize_api_key",
]
