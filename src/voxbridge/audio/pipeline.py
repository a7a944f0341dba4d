"""
Audio artifact fetch pipeline

Downloads a conversation recording from the vendor, stores it and links it
to the CallLog. Outcomes only ever touch the CallLog's audio fields.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from voxbridge.audio.store import AudioArtifactStore
from voxbridge.providers.conversational import ConversationalAIProvider, RecordingStatus
from voxbridge.storage.base import SyncStorage
from voxbridge.storage.models import AudioFetchStatus, AudioStatusPatch, utcnow


@dataclass
class AudioFetchOutcome:
    """Result of one pipeline run"""
    status: AudioFetchStatus
    storage_key: Optional[str] = None
    recording_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == AudioFetchStatus.AVAILABLE


class AudioFetchPipeline:
    """
    Fetch -> store -> link pipeline for call recordings.

    Steps:
    0. mark the CallLog pending
    1. request the recording (not found -> unavailable, error -> failed)
    2. store bytes and metadata sidecar
    3. derive the playback URL
    4. mark the CallLog available with key, URL and fetch time

    fetch_and_store() never raises; failures are reported in the outcome.
    """

    def __init__(self, store: AudioArtifactStore, storage: SyncStorage):
        self.store = store
        self.storage = storage
        self.logger = logger.bind(component="AudioFetchPipeline")

    async def fetch_and_store(
        self,
        provider: ConversationalAIProvider,
        conversation_id: str,
        call_id: str,
        organization_id: str,
    ) -> AudioFetchOutcome:
        """
        Fetch and store the recording of one conversation.

        Args:
            provider: Initialized conversational adapter
            conversation_id: Vendor conversation id
            call_id: Local CallLog id
            organization_id: Tenant

        Returns:
            AudioFetchOutcome with the final audio status
        """
        log = self.logger.bind(org_id=organization_id)

        # Step 0
        try:
            await self.storage.update_call_audio_status(
                call_id, organization_id, AudioStatusPatch(status=AudioFetchStatus.PENDING)
            )
        except Exception as e:
            log.error(f"[{conversation_id}] Could not mark audio pending: {e}")
            return AudioFetchOutcome(AudioFetchStatus.FAILED, error=f"persistence error: {e}")

        # Step 1
        log.debug(f"[{conversation_id}] Step 1: requesting recording from {provider.provider_id}")
        try:
            recording = await provider.get_recording(conversation_id)
        except Exception as e:
            recording = None
            error = str(e)
        else:
            error = recording.error

        if recording is not None and recording.status == RecordingStatus.NOT_FOUND:
            log.info(f"[{conversation_id}] No recording at vendor, marking unavailable")
            return await self._finish(call_id, organization_id, conversation_id, AudioFetchStatus.UNAVAILABLE)

        if recording is None or not recording.ok:
            log.warning(f"[{conversation_id}] Recording fetch failed: {error}")
            return await self._finish(
                call_id, organization_id, conversation_id, AudioFetchStatus.FAILED, error or "recording fetch failed"
            )

        # Step 2
        try:
            asset = await self.store.upload(conversation_id, recording.data, call_id, organization_id)
        except Exception as e:
            log.error(f"[{conversation_id}] Step 2: storing recording failed: {e}")
            return await self._finish(
                call_id, organization_id, conversation_id, AudioFetchStatus.FAILED, f"storage error: {e}"
            )
        log.debug(f"[{conversation_id}] Step 2: stored {asset.size_bytes} bytes as {asset.storage_key}")

        # Step 3
        recording_url = self.store.playback_url(asset.storage_key)
        log.debug(f"[{conversation_id}] Step 3: playback URL {recording_url}")

        # Step 4
        patch = AudioStatusPatch(
            status=AudioFetchStatus.AVAILABLE,
            storage_key=asset.storage_key,
            recording_url=recording_url,
            fetched_at=utcnow(),
        )
        try:
            updated = await self.storage.update_call_audio_status(call_id, organization_id, patch)
            if updated is None:
                raise LookupError(f"call log {call_id} not found")
        except Exception as e:
            log.error(f"[{conversation_id}] Step 4: linking recording to call log failed: {e}")
            await self.store.delete(asset.storage_key)
            return await self._finish(
                call_id, organization_id, conversation_id, AudioFetchStatus.FAILED, f"persistence error: {e}"
            )

        log.info(f"[{conversation_id}] Step 4: recording available at {recording_url}")
        return AudioFetchOutcome(
            AudioFetchStatus.AVAILABLE,
            storage_key=asset.storage_key,
            recording_url=recording_url,
        )

    async def _finish(
        self,
        call_id: str,
        organization_id: str,
        conversation_id: str,
        status: AudioFetchStatus,
        error: Optional[str] = None,
    ) -> AudioFetchOutcome:
        try:
            await self.storage.update_call_audio_status(
                call_id, organization_id, AudioStatusPatch(status=status, fetched_at=utcnow())
            )
        except Exception as e:
            self.logger.bind(org_id=organization_id).error(
                f"[{conversation_id}] Could not record audio status {status.value}: {e}"
            )
            error = f"{error}; persistence error: {e}" if error else f"persistence error: {e}"
        return AudioFetchOutcome(status, error=error)
