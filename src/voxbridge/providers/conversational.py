"""
Conversational-AI provider interface

Covers hosted voice agents: agent CRUD, conversation history, transcripts,
call recordings and realtime session handles.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from voxbridge.providers.base import BaseProvider, ProviderCapability


@dataclass
class RemoteAgent:
    """
    Agent definition as reported by the vendor.

    Only the fields the local Agent table needs are normalized; the vendor
    payload is kept in ``raw``.

    Attributes:
        external_id: Vendor-assigned agent id (None when the payload lacks one)
        name: Display name
        voice_id: Voice reference
        prompt: System prompt
        first_message: Greeting spoken when the call starts
        language: Language code
    """
    external_id: Optional[str]
    name: str = "Unnamed Agent"
    voice_id: Optional[str] = None
    prompt: Optional[str] = None
    first_message: Optional[str] = None
    language: str = "en"
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class RemoteConversation:
    """
    Conversation as reported by the vendor (list summary or detail).

    Attributes:
        conversation_id: Vendor conversation id, the dedup key (None when missing)
        agent_id: Vendor agent id the conversation ran against
        status: Vendor status string
        duration_seconds: Call duration
        cost: Vendor-reported cost
        phone_number: Caller number for telephony conversations
        recording_url: Vendor-hosted recording URL, if any
        has_recording: Vendor recording flag (None when unknown)
        started_at: Conversation start time
    """
    conversation_id: Optional[str]
    agent_id: Optional[str] = None
    status: str = "completed"
    duration_seconds: int = 0
    cost: Optional[str] = None
    phone_number: Optional[str] = None
    recording_url: Optional[str] = None
    has_recording: Optional[bool] = None
    started_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class RecordingStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class RecordingResult:
    """
    Three-way outcome of a recording download.

    ``NOT_FOUND`` means the vendor confirmed that no recording exists (terminal);
    ``ERROR`` is a transient or unexpected failure that may succeed later.
    """
    status: RecordingStatus
    data: Optional[bytes] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, data: bytes) -> "RecordingResult":
        return cls(status=RecordingStatus.FOUND, data=data)

    @classmethod
    def not_found(cls) -> "RecordingResult":
        return cls(status=RecordingStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: str) -> "RecordingResult":
        return cls(status=RecordingStatus.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == RecordingStatus.FOUND and self.data is not None


@dataclass
class RealtimeSession:
    """Handle for a browser/WebRTC session against a hosted agent"""
    agent_id: str
    url: Optional[str] = None
    token: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class ConversationalAIProvider(BaseProvider):
    """
    Conversational-AI provider interface.

    Implementations translate agent and conversation operations into the
    vendor's wire protocol. Every method raises ProviderError on failure,
    except get_recording() which reports failures in its RecordingResult.
    """

    capability = ProviderCapability.CONVERSATIONAL_AI

    # Agent management

    @abstractmethod
    async def create_agent(self, agent_data: Dict[str, Any]) -> RemoteAgent:
        pass

    @abstractmethod
    async def update_agent(self, agent_id: str, updates: Dict[str, Any]) -> RemoteAgent:
        pass

    @abstractmethod
    async def delete_agent(self, agent_id: str) -> None:
        pass

    @abstractmethod
    async def get_agent(self, agent_id: str) -> RemoteAgent:
        pass

    @abstractmethod
    async def list_agents(self) -> List[RemoteAgent]:
        pass

    # Conversations

    @abstractmethod
    async def list_conversations(
        self,
        agent_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[RemoteConversation]:
        """
        List the most recent conversations.

        Args:
            agent_id: Restrict to one vendor agent
            limit: Maximum number of conversations to return

        Returns:
            Conversation summaries, newest first
        """
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> RemoteConversation:
        """Fetch the detailed conversation record (duration, cost, recording flag)"""
        pass

    @abstractmethod
    async def get_transcript(self, conversation_id: str) -> Any:
        """
        Fetch the conversation transcript.

        Returns:
            JSON-serializable transcript payload
        """
        pass

    @abstractmethod
    async def get_recording(self, conversation_id: str) -> RecordingResult:
        """
        Download the call recording.

        Must distinguish "vendor has no recording" from "could not fetch it
        right now"; never raises for vendor failures.
        """
        pass

    # Realtime

    @abstractmethod
    async def create_realtime_session(
        self,
        agent_id: str,
        enable_microphone: bool = True,
    ) -> RealtimeSession:
        pass
