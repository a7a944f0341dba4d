"""
Unit tests for the gateway passthrough adapters.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from voxbridge.providers import ProviderCapability, ProviderError, ProviderErrorKind
from voxbridge.providers.gateway import (
    GatewayClient,
    GatewayLLMAdapter,
    GatewaySTTAdapter,
    GatewayTelephonyAdapter,
    GatewayTTSAdapter,
    create_gateway_adapters,
)


class GatewayStub:
    """Records passthrough requests and answers from a handler"""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


def _gateway(stub, connection_keys=None) -> GatewayClient:
    return GatewayClient(
        base_url="https://gateway.test",
        secret_key="gw-secret",
        connection_keys=connection_keys or {"twilio": "conn-tw", "openai": "conn-oa", "elevenlabs": "conn-el"},
        retry_delay=0,
        transport=httpx.MockTransport(stub),
    )


class TestGatewayAdapters:
    """Tests for passthrough adapters."""

    @pytest.mark.asyncio
    async def test_llm_passthrough(self):
        stub = GatewayStub(lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}))
        adapter = GatewayLLMAdapter(_gateway(stub))
        await adapter.initialize({})

        assert await adapter.generate("Hi") == "ok"

        request = stub.requests[0]
        assert request.url.path == "/v1/passthrough/v1/chat/completions"
        assert request.headers["x-pica-secret"] == "gw-secret"
        assert request.headers["x-pica-connection-key"] == "conn-oa"
        assert json.loads(request.content)["messages"] == [{"role": "user", "content": "Hi"}]
        await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_telephony_passthrough(self):
        stub = GatewayStub(lambda r: httpx.Response(201, json={"sid": "CA9", "status": "queued"}))
        adapter = GatewayTelephonyAdapter(_gateway(stub), account_sid="AC1")
        await adapter.initialize({})

        call = await adapter.place_outbound_call("+1555", "+1666", {"url": "https://app/twiml"})

        assert call.call_id == "CA9"
        request = stub.requests[0]
        assert request.url.path == "/v1/passthrough/2010-04-01/Accounts/AC1/Calls.json"
        assert request.headers["x-pica-connection-key"] == "conn-tw"
        assert parse_qs(request.content.decode())["To"] == ["+1555"]
        await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_telephony_needs_account(self):
        adapter = GatewayTelephonyAdapter(_gateway(GatewayStub(lambda r: httpx.Response(200))))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.initialize({})
        assert exc_info.value.kind == ProviderErrorKind.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_tts_returns_bytes(self):
        stub = GatewayStub(lambda r: httpx.Response(200, content=b"mp3"))
        adapter = GatewayTTSAdapter(_gateway(stub))
        await adapter.initialize({})

        assert await adapter.synthesize("Hello", "voice_1") == b"mp3"
        assert stub.requests[0].url.path == "/v1/passthrough/v1/text-to-speech/voice_1"
        await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_stt_upload(self):
        stub = GatewayStub(lambda r: httpx.Response(200, json={"text": "transcribed"}))
        adapter = GatewaySTTAdapter(_gateway(stub))
        await adapter.initialize({})

        assert await adapter.transcribe(b"wav") == "transcribed"
        await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_missing_connection(self):
        adapter = GatewayLLMAdapter(_gateway(GatewayStub(lambda r: httpx.Response(200)), {"twilio": "conn-tw"}))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.initialize({})
        assert exc_info.value.kind == ProviderErrorKind.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_vendor_errors_normalized(self):
        stub = GatewayStub(lambda r: httpx.Response(401, json={"message": "bad connection key"}))
        adapter = GatewayTTSAdapter(_gateway(stub))
        await adapter.initialize({})

        with pytest.raises(ProviderError) as exc_info:
            await adapter.list_voices()

        assert exc_info.value.kind == ProviderErrorKind.PERMANENT
        await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_uninitialized(self):
        adapter = GatewayLLMAdapter(_gateway(GatewayStub(lambda r: httpx.Response(200))))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.generate("Hi")
        assert exc_info.value.kind == ProviderErrorKind.NOT_CONFIGURED


class TestCreateGatewayAdapters:
    """Tests for building the adapter set from settings."""

    @pytest.mark.asyncio
    async def test_only_connected_vendors(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        adapters = await create_gateway_adapters(
            {
                "base_url": "https://gateway.test",
                "secret_key": "gw-secret",
                "connection_keys": {"openai": "conn-oa", "twilio": ""},
                "twilio_account_sid": "AC1",
            },
            http_options={"transport": transport, "retry_delay": 0, "unrelated": 1},
        )

        assert [type(a) for a in adapters] == [GatewayLLMAdapter, GatewaySTTAdapter]
        assert {c for a in adapters for c in a.capabilities} == {ProviderCapability.LLM, ProviderCapability.STT}
        assert all(a.provider_id == "openai" for a in adapters)
        for adapter in adapters:
            await adapter.cleanup()

    @pytest.mark.asyncio
    async def test_no_secret(self):
        adapters = await create_gateway_adapters({"connection_keys": {"openai": "conn-oa"}})
        assert adapters == []

    @pytest.mark.asyncio
    async def test_shared_client_released_last(self):
        stub = GatewayStub(lambda r: httpx.Response(200, json={"voices": []}))
        gateway = _gateway(stub)
        tts = GatewayTTSAdapter(gateway)
        llm = GatewayLLMAdapter(gateway)
        await tts.initialize({})
        await llm.initialize({})

        await tts.list_voices()
        await llm.cleanup()
        # Still usable by the remaining adapter
        assert await tts.list_voices() == []
        await tts.cleanup()
        assert gateway._clients == {}
