"""
Unit tests for AudioArtifactStore.
"""

import pytest

from voxbridge.audio import AudioArtifactStore, sanitize_key

from fakes import SidecarFailingStore


class TestSanitizeKey:
    """Tests for key sanitization."""

    def test_keeps_safe_characters(self):
        assert sanitize_key("conv_123-abc.mp3") == "conv_123-abc.mp3"

    def test_replaces_unsafe_characters(self):
        assert sanitize_key("../etc/passwd") == ".._etc_passwd"
        assert sanitize_key("conv id:1") == "conv_id_1"


class TestAudioArtifactStore:
    """Tests for the filesystem audio store."""

    def test_creates_directory(self, tmp_path):
        """Test the storage directory is created on construction."""
        AudioArtifactStore(tmp_path / "nested" / "audio")
        assert (tmp_path / "nested" / "audio").is_dir()

    def test_generate_key(self, audio_store):
        """Test keys embed the sanitized conversation id."""
        key = audio_store.generate_key("conv/1")
        assert key.startswith("conv_1_")
        assert key.endswith(".mp3")

    def test_playback_url(self, tmp_path):
        """Test playback URLs use the configured prefix."""
        store = AudioArtifactStore(tmp_path, url_prefix="/media/audio/")
        assert store.playback_url("c1_1.mp3") == "/media/audio/c1_1.mp3"

    @pytest.mark.asyncio
    async def test_upload_download(self, audio_store):
        """Test an uploaded recording can be read back with its metadata."""
        asset = await audio_store.upload("conv-1", b"audio-bytes", call_id="call-1", organization_id="org-1")

        assert asset.size_bytes == len(b"audio-bytes")
        assert await audio_store.exists(asset.storage_key)
        assert await audio_store.download(asset.storage_key) == b"audio-bytes"

        metadata = await audio_store.get_metadata(asset.storage_key)
        assert metadata["organizationId"] == "org-1"
        assert metadata["callId"] == "call-1"
        assert "uploadedAt" in metadata

    @pytest.mark.asyncio
    async def test_list_keys_excludes_metadata(self, audio_store):
        """Test metadata sidecars are not listed as recordings."""
        asset = await audio_store.upload("conv-1", b"x")
        assert await audio_store.list_keys() == [asset.storage_key]

    @pytest.mark.asyncio
    async def test_delete(self, audio_store):
        """Test delete removes the recording and its sidecar."""
        asset = await audio_store.upload("conv-1", b"x")

        await audio_store.delete(asset.storage_key)

        assert not await audio_store.exists(asset.storage_key)
        assert await audio_store.get_metadata(asset.storage_key) is None
        # Deleting twice is harmless
        await audio_store.delete(asset.storage_key)

    @pytest.mark.asyncio
    async def test_download_missing(self, audio_store):
        """Test downloading an unknown key raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            await audio_store.download("nope.mp3")

    @pytest.mark.asyncio
    async def test_invalid_keys(self, audio_store):
        """Test keys that would escape the directory are rejected."""
        assert await audio_store.exists("..") is False
        with pytest.raises(ValueError):
            await audio_store.download("..")

    @pytest.mark.asyncio
    async def test_corrupt_metadata(self, audio_store):
        """Test a corrupt sidecar reads as missing metadata."""
        asset = await audio_store.upload("conv-1", b"x")
        (audio_store.storage_dir / f"{asset.storage_key}.meta.json").write_text("{not json", encoding="utf-8")

        assert await audio_store.get_metadata(asset.storage_key) is None

    @pytest.mark.asyncio
    async def test_failed_upload_removes_recording(self, tmp_path):
        """Test a failed sidecar write removes the recording it followed."""
        store = SidecarFailingStore(tmp_path / "audio")

        with pytest.raises(OSError):
            await store.upload("conv-1", b"x")

        assert await store.list_keys() == []
