"""
Unit tests for application wiring.
"""

import pytest

from voxbridge import create_context
from voxbridge.config import AudioConfig, HttpConfig, ProviderConfig, SyncConfig, VoxbridgeConfig
from voxbridge.providers import ProviderCapability
from voxbridge.storage import InMemoryStorage


class TestCreateContext:
    """Tests for create_context."""

    @pytest.mark.asyncio
    async def test_wires_collaborators(self, tmp_path):
        config = VoxbridgeConfig(
            audio=AudioConfig(storage_dir=str(tmp_path / "audio"), url_prefix="/recordings"),
            http=HttpConfig(timeout=7.0, max_retries=2, retry_delay=0.5),
            sync=SyncConfig(max_conversation_pages=5),
            providers={"tts": ProviderConfig(type="elevenlabs", config={"api_key": "sk_test"})},
        )
        storage = InMemoryStorage()

        context = await create_context(storage, config)

        assert context.storage is storage
        assert context.engine.storage is storage
        assert context.audio_store.playback_url("k.mp3") == "/recordings/k.mp3"
        assert (tmp_path / "audio").is_dir()

        tts = context.registry.get_default_by_type(ProviderCapability.TTS)
        assert tts.is_initialized()
        assert tts.timeout == 7.0
        assert tts.max_retries == 2
        assert tts.max_conversation_pages == 5

        adapter = context.factory.create("openai")
        assert adapter.retry_delay == 0.5

        await context.aclose()
        assert tts.is_initialized() is False
