"""
Persistence interface consumed by the synchronization engine
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from voxbridge.storage.models import (
    Agent,
    AudioFetchStatus,
    AudioStatusPatch,
    CallLog,
    Integration,
    IntegrationStatus,
)


class PersistenceError(Exception):
    """Datastore read or write failed"""


class SyncStorage(ABC):
    """
    Async persistence interface.

    Implementations must enforce the unique constraints
    (organization_id, external_id) on agents and
    (organization_id, conversation_id) on call logs, and raise
    PersistenceError for datastore failures. Update methods return None when
    the record does not exist in the organization.
    """

    # Integrations

    @abstractmethod
    async def get_integrations(self, organization_id: str) -> List[Integration]:
        pass

    @abstractmethod
    async def update_integration_status(
        self,
        integration_id: str,
        organization_id: str,
        status: Optional[IntegrationStatus] = None,
        last_synced_at: Optional[datetime] = None,
    ) -> Optional[Integration]:
        pass

    # Agents

    @abstractmethod
    async def get_agent_by_external_id(self, external_id: str, organization_id: str) -> Optional[Agent]:
        pass

    @abstractmethod
    async def create_agent(self, agent: Agent) -> Agent:
        pass

    @abstractmethod
    async def update_agent(self, agent_id: str, organization_id: str, updates: Dict[str, Any]) -> Optional[Agent]:
        pass

    # Call logs

    @abstractmethod
    async def get_call_log_by_conversation_id(self, organization_id: str, conversation_id: str) -> Optional[CallLog]:
        pass

    @abstractmethod
    async def create_call_log(self, call_log: CallLog) -> CallLog:
        pass

    @abstractmethod
    async def update_call_log(self, call_id: str, organization_id: str, updates: Dict[str, Any]) -> Optional[CallLog]:
        pass

    @abstractmethod
    async def update_call_audio_status(
        self,
        call_id: str,
        organization_id: str,
        patch: AudioStatusPatch,
    ) -> Optional[CallLog]:
        pass

    @abstractmethod
    async def list_call_logs(
        self,
        organization_id: str,
        audio_statuses: Optional[Sequence[Optional[AudioFetchStatus]]] = None,
    ) -> List[CallLog]:
        """
        List an organization's call logs.

        Args:
            organization_id: Tenant
            audio_statuses: Only logs whose audio_fetch_status is in this
                sequence (None inside the sequence matches unset)
        """
        pass
