"""
Pytest fixtures for testing
"""

import pytest

from voxbridge.audio import AudioArtifactStore
from voxbridge.config import SyncConfig, VoxbridgeConfig
from voxbridge.providers import ProviderFactory
from voxbridge.storage import InMemoryStorage, Integration
from voxbridge.sync import SyncEngine

from fakes import FakeConversationalProvider, FakeTelephonyProvider, VendorScript


ORG = "org-1"


@pytest.fixture
def storage():
    """Empty in-memory storage"""
    return InMemoryStorage()


@pytest.fixture
def audio_store(tmp_path):
    """Audio store rooted in a temporary directory"""
    return AudioArtifactStore(tmp_path / "audio")


@pytest.fixture
def sync_config():
    """Sync settings without real backoff delays"""
    return VoxbridgeConfig(
        sync=SyncConfig(
            audio_resync_max_retries=3,
            audio_resync_retry_delay=0.0,
            dashboard_timeout_seconds=5.0,
        )
    )


@pytest.fixture
def scripts():
    """One VendorScript per fake vendor"""
    return {"vendor_a": VendorScript(), "vendor_b": VendorScript()}


@pytest.fixture
def factory(scripts):
    """Factory over the fake vendors"""
    catalog = {
        "vendor_a": FakeConversationalProvider,
        "vendor_b": FakeConversationalProvider,
        "phones": FakeTelephonyProvider,
    }
    options = {vendor: {"script": script} for vendor, script in scripts.items()}
    return ProviderFactory(catalog=catalog, options=options)


@pytest.fixture
def engine(storage, audio_store, factory, sync_config):
    """Sync engine over the fake vendors"""
    return SyncEngine(storage, audio_store, factory, sync_config)


@pytest.fixture
def add_integration(storage):
    """Add an active integration for ORG"""
    async def _add(vendor_id: str, **kwargs) -> Integration:
        kwargs.setdefault("credentials", {"api_key": f"{vendor_id}-key"})
        return await storage.add_integration(Integration(organization_id=ORG, vendor_id=vendor_id, **kwargs))
    return _add
