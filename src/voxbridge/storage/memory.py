"""
In-memory SyncStorage implementation

Reference store used by tests and local runs. Records are copied on the
way in and out so callers never mutate stored state directly.
"""

import copy
import dataclasses
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from voxbridge.storage.base import PersistenceError, SyncStorage
from voxbridge.storage.models import (
    Agent,
    AudioFetchStatus,
    AudioStatusPatch,
    CallLog,
    Integration,
    IntegrationStatus,
    utcnow,
)


T = TypeVar("T")

_IMMUTABLE_FIELDS = {"id", "organization_id", "created_at"}


def _apply(record: T, updates: Dict[str, Any]) -> T:
    fields = {f.name for f in dataclasses.fields(record)}
    unknown = set(updates) - fields
    if unknown:
        raise PersistenceError(f"Unknown fields for {type(record).__name__}: {sorted(unknown)}")
    frozen = set(updates) & _IMMUTABLE_FIELDS
    if frozen:
        raise PersistenceError(f"Fields cannot be updated: {sorted(frozen)}")
    return dataclasses.replace(record, **updates)


class InMemoryStorage(SyncStorage):
    """Dictionary-backed storage enforcing the natural unique keys"""

    def __init__(self):
        self.integrations: Dict[str, Integration] = {}
        self.agents: Dict[str, Agent] = {}
        self.call_logs: Dict[str, CallLog] = {}
        self._agent_keys: Dict[Tuple[str, str], str] = {}
        self._call_keys: Dict[Tuple[str, str], str] = {}
        self.logger = logger.bind(component="InMemoryStorage")

    # Integrations

    async def add_integration(self, integration: Integration) -> Integration:
        self.integrations[integration.id] = copy.deepcopy(integration)
        return copy.deepcopy(integration)

    async def get_integrations(self, organization_id: str) -> List[Integration]:
        return [
            copy.deepcopy(integration)
            for integration in self.integrations.values()
            if integration.organization_id == organization_id
        ]

    async def update_integration_status(
        self,
        integration_id: str,
        organization_id: str,
        status: Optional[IntegrationStatus] = None,
        last_synced_at: Optional[datetime] = None,
    ) -> Optional[Integration]:
        integration = self.integrations.get(integration_id)
        if integration is None or integration.organization_id != organization_id:
            return None
        updates: Dict[str, Any] = {}
        if status is not None:
            updates["status"] = status
        if last_synced_at is not None:
            updates["last_synced_at"] = last_synced_at
        integration = _apply(integration, updates)
        self.integrations[integration_id] = integration
        return copy.deepcopy(integration)

    # Agents

    async def get_agent_by_external_id(self, external_id: str, organization_id: str) -> Optional[Agent]:
        agent_id = self._agent_keys.get((organization_id, external_id))
        if agent_id is None:
            return None
        return copy.deepcopy(self.agents[agent_id])

    async def create_agent(self, agent: Agent) -> Agent:
        key = (agent.organization_id, agent.external_id)
        if key in self._agent_keys:
            raise PersistenceError(f"Agent {agent.external_id} already exists in {agent.organization_id}")
        self.agents[agent.id] = copy.deepcopy(agent)
        self._agent_keys[key] = agent.id
        return copy.deepcopy(agent)

    async def update_agent(self, agent_id: str, organization_id: str, updates: Dict[str, Any]) -> Optional[Agent]:
        agent = self.agents.get(agent_id)
        if agent is None or agent.organization_id != organization_id:
            return None
        if "external_id" in updates and updates["external_id"] != agent.external_id:
            raise PersistenceError("external_id cannot be changed")
        agent = _apply(agent, {**updates, "updated_at": utcnow()})
        self.agents[agent_id] = agent
        return copy.deepcopy(agent)

    async def list_agents(self, organization_id: str) -> List[Agent]:
        return [copy.deepcopy(a) for a in self.agents.values() if a.organization_id == organization_id]

    # Call logs

    async def get_call_log_by_conversation_id(self, organization_id: str, conversation_id: str) -> Optional[CallLog]:
        call_id = self._call_keys.get((organization_id, conversation_id))
        if call_id is None:
            return None
        return copy.deepcopy(self.call_logs[call_id])

    async def create_call_log(self, call_log: CallLog) -> CallLog:
        key = (call_log.organization_id, call_log.conversation_id)
        if not call_log.conversation_id:
            raise PersistenceError("conversation_id is required")
        if key in self._call_keys:
            raise PersistenceError(
                f"Call log for conversation {call_log.conversation_id} already exists in {call_log.organization_id}"
            )
        self.call_logs[call_log.id] = copy.deepcopy(call_log)
        self._call_keys[key] = call_log.id
        return copy.deepcopy(call_log)

    async def update_call_log(self, call_id: str, organization_id: str, updates: Dict[str, Any]) -> Optional[CallLog]:
        call_log = self.call_logs.get(call_id)
        if call_log is None or call_log.organization_id != organization_id:
            return None
        if "conversation_id" in updates and updates["conversation_id"] != call_log.conversation_id:
            raise PersistenceError("conversation_id cannot be changed")
        call_log = _apply(call_log, {**updates, "updated_at": utcnow()})
        self.call_logs[call_id] = call_log
        return copy.deepcopy(call_log)

    async def update_call_audio_status(
        self,
        call_id: str,
        organization_id: str,
        patch: AudioStatusPatch,
    ) -> Optional[CallLog]:
        return await self.update_call_log(call_id, organization_id, patch.to_updates())

    async def list_call_logs(
        self,
        organization_id: str,
        audio_statuses: Optional[Sequence[Optional[AudioFetchStatus]]] = None,
    ) -> List[CallLog]:
        logs = [c for c in self.call_logs.values() if c.organization_id == organization_id]
        if audio_statuses is not None:
            logs = [c for c in logs if c.audio_fetch_status in audio_statuses]
        return [copy.deepcopy(c) for c in sorted(logs, key=lambda c: c.created_at)]
