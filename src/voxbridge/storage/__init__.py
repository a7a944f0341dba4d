"""
Persistence collaborator: data model, async interface and in-memory store
"""

from voxbridge.storage.models import (
    Integration,
    IntegrationStatus,
    Agent,
    CallLog,
    AudioAsset,
    AudioFetchStatus,
    AudioStatusPatch,
)
from voxbridge.storage.base import SyncStorage, PersistenceError
from voxbridge.storage.memory import InMemoryStorage

__all__ = [
    "Integration",
    "IntegrationStatus",
    "Agent",
    "CallLog",
    "AudioAsset",
    "AudioFetchStatus",
    "AudioStatusPatch",
    "SyncStorage",
    "PersistenceError",
    "InMemoryStorage",
]
