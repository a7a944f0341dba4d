"""
Local data model

Records mirrored from vendors, keyed by organization plus the vendor's
external id.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class IntegrationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"
    PENDING = "pending"


class AudioFetchStatus(str, Enum):
    """
    Audio fetch state of a CallLog.

    None (unset) -> PENDING -> AVAILABLE | FAILED | UNAVAILABLE.
    UNAVAILABLE is terminal (vendor confirmed no recording); FAILED is
    retried on the next pass; AVAILABLE carries a storage key.
    """
    PENDING = "pending"
    AVAILABLE = "available"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"


@dataclass
class Integration:
    """A tenant's stored credential for one vendor"""
    organization_id: str
    vendor_id: str
    credentials: Dict[str, Any] = field(default_factory=dict, repr=False)
    status: IntegrationStatus = IntegrationStatus.ACTIVE
    last_synced_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == IntegrationStatus.ACTIVE


@dataclass
class Agent:
    """Conversational agent definition, unique per (organization_id, external_id)"""
    organization_id: str
    external_id: str
    name: str
    vendor_id: Optional[str] = None
    voice_id: Optional[str] = None
    prompt: Optional[str] = None
    first_message: Optional[str] = None
    language: str = "en"
    is_active: bool = True
    last_synced_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class CallLog:
    """
    One vendor conversation, unique per (organization_id, conversation_id).

    Attributes:
        conversation_id: Vendor conversation id (dedup key)
        vendor_id: Vendor the conversation was synced from
        agent_id: Local Agent id, None when the vendor agent is not known locally
        transcript: Serialized JSON transcript
        recording_url: Playback reference once the audio is stored
        audio_storage_key: Key in the audio artifact store
        audio_fetch_status: None until the first fetch attempt
    """
    organization_id: str
    conversation_id: str
    vendor_id: Optional[str] = None
    agent_id: Optional[str] = None
    phone_number: Optional[str] = None
    status: str = "completed"
    duration: int = 0
    cost: Optional[str] = None
    transcript: Optional[str] = field(default=None, repr=False)
    recording_url: Optional[str] = None
    audio_storage_key: Optional[str] = None
    audio_fetch_status: Optional[AudioFetchStatus] = None
    audio_fetched_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class AudioAsset:
    """Stored recording and its sidecar metadata"""
    storage_key: str
    size_bytes: int
    conversation_id: str
    call_id: Optional[str]
    organization_id: Optional[str]
    uploaded_at: datetime = field(default_factory=utcnow)

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "callId": self.call_id,
            "organizationId": self.organization_id,
            "uploadedAt": self.uploaded_at.isoformat(),
            "fileSize": self.size_bytes,
        }


@dataclass
class AudioStatusPatch:
    """Partial update of a CallLog's audio fields"""
    status: AudioFetchStatus
    storage_key: Optional[str] = None
    recording_url: Optional[str] = None
    fetched_at: Optional[datetime] = None

    def to_updates(self) -> Dict[str, Any]:
        updates: Dict[str, Any] = {"audio_fetch_status": self.status}
        if self.storage_key is not None:
            updates["audio_storage_key"] = self.storage_key
        if self.recording_url is not None:
            updates["recording_url"] = self.recording_url
        if self.fetched_at is not None:
            updates["audio_fetched_at"] = self.fetched_at
        return updates
