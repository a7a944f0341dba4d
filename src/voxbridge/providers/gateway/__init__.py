"""
Meta-gateway passthrough adapters

Providers (not in the catalog, built by create_gateway_adapters):
- GatewayTelephonyAdapter: Twilio telephony (id "twilio")
- GatewayLLMAdapter: OpenAI chat (id "openai")
- GatewayTTSAdapter: ElevenLabs TTS (id "elevenlabs")
- GatewaySTTAdapter: OpenAI Whisper (id "openai")
"""

from voxbridge.providers.gateway.client import GatewayClient
from voxbridge.providers.gateway.adapters import (
    GatewayAdapter,
    GatewayTelephonyAdapter,
    GatewayLLMAdapter,
    GatewayTTSAdapter,
    GatewaySTTAdapter,
    create_gateway_adapters,
)

__all__ = [
    "GatewayClient",
    "GatewayAdapter",
    "GatewayTelephonyAdapter",
    "GatewayLLMAdapter",
    "GatewayTTSAdapter",
    "GatewaySTTAdapter",
    "create_gateway_adapters",
]
