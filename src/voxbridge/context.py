"""
Application wiring

Builds the long-lived collaborators once per process: provider factory and
registry, audio store and sync engine. Storage is supplied by the host
application.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from voxbridge.audio.store import AudioArtifactStore
from voxbridge.config.schema import VoxbridgeConfig
from voxbridge.providers.factory import ProviderFactory, bootstrap_registry
from voxbridge.providers.registry import ProviderRegistry
from voxbridge.storage.base import SyncStorage
from voxbridge.sync.engine import SyncEngine


@dataclass
class AppContext:
    """Process-wide collaborators"""
    config: VoxbridgeConfig
    factory: ProviderFactory
    registry: ProviderRegistry
    storage: SyncStorage
    audio_store: AudioArtifactStore
    engine: SyncEngine

    async def aclose(self) -> None:
        """Release every adapter held by the registry"""
        await self.registry.cleanup()


def build_factory(config: VoxbridgeConfig) -> ProviderFactory:
    """Factory whose adapters inherit the configured HTTP policy"""
    http = config.http
    return ProviderFactory(
        options={"elevenlabs": {"max_conversation_pages": config.sync.max_conversation_pages}},
        default_options={
            "timeout": http.timeout,
            "max_retries": http.max_retries,
            "retry_delay": http.retry_delay,
        },
    )


async def create_context(storage: SyncStorage, config: Optional[VoxbridgeConfig] = None) -> AppContext:
    """
    Create the application context.

    Args:
        storage: Persistence collaborator
        config: Configuration (defaults to get_config())

    Returns:
        AppContext with a bootstrapped registry
    """
    if config is None:
        from voxbridge.config.loader import get_config
        config = get_config()

    factory = build_factory(config)
    registry = await bootstrap_registry(config, factory)
    audio_store = AudioArtifactStore(config.audio.storage_dir, url_prefix=config.audio.url_prefix)
    engine = SyncEngine(storage, audio_store, factory, config)

    logger.info(f"voxbridge ready (audio: {audio_store.storage_dir})")
    return AppContext(
        config=config,
        factory=factory,
        registry=registry,
        storage=storage,
        audio_store=audio_store,
        engine=engine,
    )
