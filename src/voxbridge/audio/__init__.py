"""
Call recording storage and fetch pipeline
"""

from voxbridge.audio.store import AudioArtifactStore, sanitize_key
from voxbridge.audio.pipeline import AudioFetchPipeline, AudioFetchOutcome

__all__ = [
    "AudioArtifactStore",
    "sanitize_key",
    "AudioFetchPipeline",
    "AudioFetchOutcome",
]
