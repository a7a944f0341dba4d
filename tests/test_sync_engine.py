"""
Unit tests for SyncEngine.

Tests cover:
- Agent and call log upserts (idempotence, natural keys)
- Per-record and per-integration error isolation
- Audio fetch outcomes during call log sync
- Dashboard deadline, sync_all isolation
- Missing audio resync and credential checks
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from voxbridge.config import SyncConfig, VoxbridgeConfig
from voxbridge.providers import ProviderError, ProviderErrorKind, RecordingResult, RemoteAgent
from voxbridge.storage import (
    AudioFetchStatus,
    CallLog,
    InMemoryStorage,
    IntegrationStatus,
    PersistenceError,
)
from voxbridge.sync import SyncEngine

from conftest import ORG
from fakes import FakeTelephonyProvider, conversation


AUDIO = b"ID3\x03\x00fake-mp3"


class FailingIntegrationsStorage(InMemoryStorage):
    """Storage whose integration lookup is down"""

    async def get_integrations(self, organization_id):
        raise ConnectionError("database unavailable")


# ============ Agents ============

class TestSyncAgents:
    """Tests for sync_agents."""

    @pytest.mark.asyncio
    async def test_creates_then_updates(self, engine, storage, scripts, add_integration):
        """Test first run creates agents, second run updates them in place."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [
            RemoteAgent(external_id="agent-1", name="Support", voice_id="v1", prompt="Be nice"),
            RemoteAgent(external_id="agent-2", name="Sales"),
        ]

        first = await engine.sync_agents(ORG)
        assert first.success is True
        assert first.synced_count == 2
        assert first.updated_count == 0

        scripts["vendor_a"].agents[0].name = "Support v2"
        second = await engine.sync_agents(ORG)
        assert second.synced_count == 0
        assert second.updated_count == 2

        agents = {a.external_id: a for a in await storage.list_agents(ORG)}
        assert len(agents) == 2
        assert agents["agent-1"].name == "Support v2"
        assert agents["agent-1"].vendor_id == "vendor_a"
        assert agents["agent-1"].prompt == "Be nice"
        assert agents["agent-1"].last_synced_at is not None

    @pytest.mark.asyncio
    async def test_agent_without_id_is_skipped(self, engine, storage, scripts, add_integration):
        """Test a remote agent without id is counted as missing_key."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id=None, name="Ghost"), RemoteAgent(external_id="a1")]

        result = await engine.sync_agents(ORG)

        assert result.success is True
        assert result.synced_count == 1
        assert result.error_count == 1
        assert result.errors[0].startswith("[missing_key]")
        assert len(await storage.list_agents(ORG)) == 1

    @pytest.mark.asyncio
    async def test_updates_integration_last_synced(self, engine, storage, add_integration):
        """Test a successful integration run refreshes last_synced_at."""
        integration = await add_integration("vendor_a")

        await engine.sync_agents(ORG)

        stored = (await storage.get_integrations(ORG))[0]
        assert stored.id == integration.id
        assert stored.last_synced_at is not None

    @pytest.mark.asyncio
    async def test_adapter_cleaned_up(self, engine, scripts, add_integration):
        """Test the per-integration adapter is released after the run."""
        await add_integration("vendor_a")
        scripts["vendor_a"].list_error = ProviderError(ProviderErrorKind.TRANSIENT, "down")

        await engine.sync_agents(ORG)

        assert scripts["vendor_a"].initialized == 1
        assert scripts["vendor_a"].cleaned_up == 1


# ============ Call Logs ============

class TestSyncCallLogs:
    """Tests for sync_call_logs."""

    @pytest.mark.asyncio
    async def test_two_integrations(self, engine, storage, audio_store, scripts, add_integration):
        """Test one conversation from each of two integrations."""
        await add_integration("vendor_a")
        await add_integration("vendor_b")
        scripts["vendor_a"].conversations = [conversation("conv-a")]
        scripts["vendor_a"].recordings = {"conv-a": AUDIO}
        scripts["vendor_b"].conversations = [conversation("conv-b")]
        scripts["vendor_b"].recordings = {"conv-b": AUDIO}

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.synced_count == 2
        assert result.error_count == 0

        logs = await storage.list_call_logs(ORG)
        assert {c.conversation_id for c in logs} == {"conv-a", "conv-b"}
        for call in logs:
            assert call.audio_fetch_status == AudioFetchStatus.AVAILABLE
            assert call.recording_url == audio_store.playback_url(call.audio_storage_key)
            assert await audio_store.download(call.audio_storage_key) == AUDIO

    @pytest.mark.asyncio
    async def test_idempotent(self, engine, storage, scripts, add_integration):
        """Test re-running with unchanged vendor state creates nothing new."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1"), conversation("c2")]
        scripts["vendor_a"].recordings = {"c1": AUDIO, "c2": AUDIO}

        first = await engine.sync_call_logs(ORG)
        before = {c.conversation_id: c.audio_storage_key for c in await storage.list_call_logs(ORG)}
        second = await engine.sync_call_logs(ORG)
        after = {c.conversation_id: c.audio_storage_key for c in await storage.list_call_logs(ORG)}

        assert first.synced_count == 2
        assert second.synced_count == 0
        assert second.updated_count == 2
        assert before == after
        # Stored recordings are not fetched again
        assert scripts["vendor_a"].recording_calls == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_missing_conversation_id(self, engine, storage, scripts, add_integration):
        """Test a conversation without id is skipped, the rest still sync."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation(None), conversation("c1")]

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.synced_count == 1
        assert result.error_count == 1
        assert result.errors[0].startswith("[missing_key]")
        assert len(await storage.list_call_logs(ORG)) == 1

    @pytest.mark.asyncio
    async def test_failing_integration_is_isolated(self, engine, storage, scripts, add_integration):
        """Test one integration failing does not stop the others."""
        failing = await add_integration("vendor_a")
        healthy = await add_integration("vendor_b")
        scripts["vendor_a"].list_error = ProviderError(ProviderErrorKind.TRANSIENT, "503 from vendor")
        scripts["vendor_b"].conversations = [conversation("c1")]

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.synced_count == 1
        assert result.error_count == 1
        assert result.errors[0].startswith("[transient_vendor_error]")
        assert failing.id in result.errors[0]

        integrations = {i.id: i for i in await storage.get_integrations(ORG)}
        assert integrations[failing.id].last_synced_at is None
        assert integrations[healthy.id].last_synced_at is not None

    @pytest.mark.asyncio
    async def test_recording_not_found(self, engine, storage, audio_store, scripts, add_integration):
        """Test a 404 recording marks the call unavailable without failing the sync."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1")]

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.error_count == 0
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert call.audio_fetch_status == AudioFetchStatus.UNAVAILABLE
        assert call.audio_storage_key is None
        assert call.recording_url is None
        assert await audio_store.list_keys() == []

    @pytest.mark.asyncio
    async def test_unavailable_not_refetched(self, engine, scripts, add_integration):
        """Test an unavailable recording is never requested again."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1")]

        await engine.sync_call_logs(ORG)
        await engine.sync_call_logs(ORG)
        resync = await engine.resync_missing_audio(ORG)

        assert scripts["vendor_a"].recording_calls == ["c1"]
        assert resync.synced_count == 0
        assert resync.error_count == 0

    @pytest.mark.asyncio
    async def test_failed_recording_keeps_call_log(self, engine, storage, scripts, add_integration):
        """Test a vendor error on the recording leaves the call log with status failed."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1")]
        scripts["vendor_a"].recordings = {"c1": RecordingResult.failed("HTTP 500")}

        result = await engine.sync_call_logs(ORG)

        assert result.synced_count == 1
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert call.audio_fetch_status == AudioFetchStatus.FAILED

    @pytest.mark.asyncio
    async def test_id_collision(self, engine, storage, scripts, add_integration):
        """Test a conversation id already owned by another vendor is not overwritten."""
        await add_integration("vendor_a")
        await storage.create_call_log(
            CallLog(organization_id=ORG, conversation_id="shared", vendor_id="vendor_b", duration=42)
        )
        scripts["vendor_a"].conversations = [conversation("shared", duration_seconds=7)]

        result = await engine.sync_call_logs(ORG)

        assert result.error_count == 1
        assert result.errors[0].startswith("[id_collision]")
        call = await storage.get_call_log_by_conversation_id(ORG, "shared")
        assert call.vendor_id == "vendor_b"
        assert call.duration == 42
        assert scripts["vendor_a"].recording_calls == []

    @pytest.mark.asyncio
    async def test_maps_local_agent(self, engine, storage, scripts, add_integration):
        """Test call logs point at the local agent when it has been synced."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1", name="Support")]
        scripts["vendor_a"].conversations = [conversation("c1", agent_id="agent-1"), conversation("c2", agent_id="other")]

        await engine.sync_agents(ORG)
        await engine.sync_call_logs(ORG)

        agent = await storage.get_agent_by_external_id("agent-1", ORG)
        assert (await storage.get_call_log_by_conversation_id(ORG, "c1")).agent_id == agent.id
        assert (await storage.get_call_log_by_conversation_id(ORG, "c2")).agent_id is None

    @pytest.mark.asyncio
    async def test_failed_agent_lookup_keeps_link(self, engine, storage, scripts, add_integration):
        """Test a failing agent lookup leaves the stored agent link untouched."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1", name="Support")]
        scripts["vendor_a"].conversations = [conversation("c1", agent_id="agent-1")]
        await engine.sync_agents(ORG)
        await engine.sync_call_logs(ORG)
        agent = await storage.get_agent_by_external_id("agent-1", ORG)

        storage.get_agent_by_external_id = AsyncMock(side_effect=PersistenceError("db unavailable"))
        result = await engine.sync_call_logs(ORG)

        assert result.updated_count == 1
        assert result.error_count == 0
        assert (await storage.get_call_log_by_conversation_id(ORG, "c1")).agent_id == agent.id

    @pytest.mark.asyncio
    async def test_detail_failure_falls_back_to_summary(self, engine, storage, scripts, add_integration):
        """Test a failing detail fetch still records the list summary."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1", duration_seconds=30, status="done")]
        scripts["vendor_a"].detail_errors = {"c1": ProviderError(ProviderErrorKind.TRANSIENT, "timeout")}

        result = await engine.sync_call_logs(ORG)

        assert result.synced_count == 1
        assert result.error_count == 0
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert call.duration == 30
        assert call.status == "done"

    @pytest.mark.asyncio
    async def test_transcripts(self, engine, storage, scripts, add_integration):
        """Test transcripts are stored as JSON when requested."""
        await add_integration("vendor_a")
        turns = [{"role": "agent", "message": "Hello"}, {"role": "user", "message": "Hi"}]
        scripts["vendor_a"].conversations = [conversation("c1")]
        scripts["vendor_a"].transcripts = {"c1": turns}

        await engine.sync_call_logs(ORG, include_transcripts=True)
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert json.loads(call.transcript) == turns

    @pytest.mark.asyncio
    async def test_limit_and_agent_filter(self, engine, storage, scripts, add_integration):
        """Test limit and agent_id are passed to the vendor listing."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [
            conversation("c1", agent_id="a"),
            conversation("c2", agent_id="b"),
            conversation("c3", agent_id="a"),
            conversation("c4", agent_id="a"),
        ]

        result = await engine.sync_call_logs(ORG, agent_id="a", limit=2)

        assert result.synced_count == 2
        assert {c.conversation_id for c in await storage.list_call_logs(ORG)} == {"c1", "c3"}


# ============ Integration Selection ============

class TestIntegrationSelection:
    """Tests for which integrations a sync touches."""

    @pytest.mark.asyncio
    async def test_non_conversational_vendor_skipped(self, engine, add_integration):
        """Test telephony-only integrations are skipped without instantiation."""
        await add_integration("phones", credentials={"account_sid": "AC1"})
        before = FakeTelephonyProvider.instances

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.error_count == 0
        assert FakeTelephonyProvider.instances == before

    @pytest.mark.asyncio
    async def test_inactive_and_unconfigured_skipped(self, engine, scripts, add_integration):
        """Test inactive integrations and integrations without credentials are skipped."""
        await add_integration("vendor_a", status=IntegrationStatus.INACTIVE)
        await add_integration("vendor_b", credentials={})

        result = await engine.sync_agents(ORG)

        assert result.success is True
        assert result.error_count == 0
        assert scripts["vendor_a"].initialized == 0
        assert scripts["vendor_b"].initialized == 0

    @pytest.mark.asyncio
    async def test_invalid_credentials_skipped(self, engine, scripts, add_integration):
        """Test a credential failing schema validation skips the integration."""
        await add_integration("vendor_a", credentials={"api_key": 12345})

        result = await engine.sync_agents(ORG)

        assert result.error_count == 0
        assert scripts["vendor_a"].initialized == 0

    @pytest.mark.asyncio
    async def test_unknown_vendor_skipped(self, engine, add_integration):
        """Test an integration for a vendor without adapter is ignored."""
        await add_integration("nobody")

        result = await engine.sync_call_logs(ORG)

        assert result.success is True
        assert result.error_count == 0

    @pytest.mark.asyncio
    async def test_storage_down(self, audio_store, factory, sync_config):
        """Test the operation fails when integrations cannot be loaded."""
        engine = SyncEngine(FailingIntegrationsStorage(), audio_store, factory, sync_config)

        result = await engine.sync_call_logs(ORG)

        assert result.success is False
        assert result.errors[0].startswith("[persistence_error]")

    @pytest.mark.asyncio
    async def test_tenants_isolated(self, engine, storage, scripts, add_integration):
        """Test a sync only reads and writes the requested organization."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1")]

        await engine.sync_call_logs(ORG)

        assert await storage.list_call_logs("org-2") == []
        result = await engine.sync_call_logs("org-2")
        assert result.synced_count == 0


# ============ Composite Operations ============

class TestCompositeSync:
    """Tests for sync_dashboard and sync_all."""

    @pytest.mark.asyncio
    async def test_dashboard(self, engine, storage, scripts, add_integration):
        """Test dashboard sync runs agents then a page of call logs without transcripts."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1")]
        scripts["vendor_a"].conversations = [conversation("c1")]
        scripts["vendor_a"].transcripts = {"c1": [{"role": "user", "message": "hi"}]}

        result = await engine.sync_dashboard(ORG)

        assert result.success is True
        assert result.agents.synced_count == 1
        assert result.call_logs.synced_count == 1
        assert result.errors == []
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert call.transcript is None

        payload = result.to_dict()
        assert payload["agents"]["syncedCount"] == 1
        assert payload["callLogs"]["syncedCount"] == 1

    @pytest.mark.asyncio
    async def test_dashboard_timeout(self, storage, audio_store, factory, scripts, add_integration):
        """Test a slow dashboard sync returns a timeout result and finishes in the background."""
        config = VoxbridgeConfig(sync=SyncConfig(dashboard_timeout_seconds=0.05))
        engine = SyncEngine(storage, audio_store, factory, config)
        await add_integration("vendor_a")
        scripts["vendor_a"].delay = 0.3
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1")]

        result = await engine.sync_dashboard(ORG)

        assert result.success is False
        assert result.errors == ["Sync operation timed out after 0.05 seconds"]
        assert result.agents.success is False
        assert result.call_logs.success is False

        await asyncio.wait_for(asyncio.gather(*engine._detached), timeout=5)
        assert await storage.get_agent_by_external_id("agent-1", ORG) is not None

    @pytest.mark.asyncio
    async def test_sync_all(self, engine, scripts, add_integration):
        """Test sync_all reports every category."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1")]
        scripts["vendor_a"].conversations = [conversation("c1")]
        scripts["vendor_a"].recordings = {"c1": AUDIO}

        result = await engine.sync_all(ORG)

        assert result.success is True
        assert set(result.results) == {"agents", "call_logs", "audio", "integrations"}
        assert result.results["agents"].synced_count == 1
        assert result.results["call_logs"].synced_count == 1
        assert result.results["integrations"].updated_count == 1

    @pytest.mark.asyncio
    async def test_sync_all_fetches_audio_once(self, engine, storage, scripts, add_integration):
        """Test concurrent categories never refetch a stored recording."""
        await add_integration("vendor_a")
        scripts["vendor_a"].conversations = [conversation("c1")]
        scripts["vendor_a"].recordings = {"c1": AUDIO}

        await engine.sync_all(ORG)

        assert scripts["vendor_a"].recording_calls == ["c1"]
        call = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert call.audio_fetch_status == AudioFetchStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_sync_all_isolates_failures(self, engine, scripts, add_integration):
        """Test one category raising does not affect the others."""
        await add_integration("vendor_a")
        scripts["vendor_a"].agents = [RemoteAgent(external_id="agent-1")]
        engine.resync_missing_audio = AsyncMock(side_effect=RuntimeError("boom"))

        result = await engine.sync_all(ORG)

        assert result.success is True
        assert result.results["audio"].success is False
        assert result.results["agents"].synced_count == 1
        assert "audio sync failed: boom" in result.errors


# ============ Maintenance ============

class TestResyncMissingAudio:
    """Tests for resync_missing_audio."""

    @pytest.mark.asyncio
    async def test_recovers_failed_recording(self, engine, storage, scripts, add_integration):
        """Test a failed recording is fetched again once the vendor has it."""
        await add_integration("vendor_a")
        call = await storage.create_call_log(
            CallLog(
                organization_id=ORG,
                conversation_id="c1",
                vendor_id="vendor_a",
                audio_fetch_status=AudioFetchStatus.FAILED,
            )
        )
        scripts["vendor_a"].recordings = {"c1": AUDIO}

        result = await engine.resync_missing_audio(ORG)

        assert result.synced_count == 1
        assert result.error_count == 0
        stored = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert stored.id == call.id
        assert stored.audio_fetch_status == AudioFetchStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_refetches_when_file_missing(self, engine, storage, scripts, add_integration):
        """Test an available status whose file is gone is refetched."""
        await add_integration("vendor_a")
        await storage.create_call_log(
            CallLog(
                organization_id=ORG,
                conversation_id="c1",
                vendor_id="vendor_a",
                audio_fetch_status=AudioFetchStatus.AVAILABLE,
                audio_storage_key="c1_0.mp3",
            )
        )
        scripts["vendor_a"].recordings = {"c1": AUDIO}

        result = await engine.resync_missing_audio(ORG)

        assert result.synced_count == 1
        stored = await storage.get_call_log_by_conversation_id(ORG, "c1")
        assert stored.audio_storage_key != "c1_0.mp3"

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, engine, storage, scripts, add_integration):
        """Test a recording that keeps failing is attempted max_retries times."""
        await add_integration("vendor_a")
        await storage.create_call_log(CallLog(organization_id=ORG, conversation_id="c1", vendor_id="vendor_a"))
        scripts["vendor_a"].recordings = {"c1": RecordingResult.failed("HTTP 503")}

        result = await engine.resync_missing_audio(ORG)

        assert result.synced_count == 0
        assert result.error_count == 1
        assert result.errors[0].startswith("[transient_vendor_error]")
        assert scripts["vendor_a"].recording_calls == ["c1", "c1", "c1"]

    @pytest.mark.asyncio
    async def test_skips_stored_recordings(self, engine, storage, audio_store, scripts, add_integration):
        """Test calls whose recording is stored are left alone."""
        await add_integration("vendor_a")
        asset = await audio_store.upload("c1", AUDIO)
        await storage.create_call_log(
            CallLog(
                organization_id=ORG,
                conversation_id="c1",
                vendor_id="vendor_a",
                audio_fetch_status=AudioFetchStatus.AVAILABLE,
                audio_storage_key=asset.storage_key,
            )
        )

        result = await engine.resync_missing_audio(ORG)

        assert result.synced_count == 0
        assert scripts["vendor_a"].recording_calls == []


class TestCheckIntegrations:
    """Tests for check_integrations."""

    @pytest.mark.asyncio
    async def test_valid_credentials(self, engine, storage, add_integration):
        """Test a valid credential refreshes last_synced_at."""
        await add_integration("vendor_a")

        result = await engine.check_integrations(ORG)

        assert result.updated_count == 1
        assert result.error_count == 0
        assert (await storage.get_integrations(ORG))[0].last_synced_at is not None

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, engine, storage, scripts, add_integration):
        """Test a rejected credential marks the integration as error."""
        await add_integration("vendor_a")
        scripts["vendor_a"].credential_error = ProviderError(
            ProviderErrorKind.PERMANENT, "invalid api key", "vendor_a", 401
        )

        result = await engine.check_integrations(ORG)

        assert result.error_count == 1
        assert result.errors[0].startswith("[permanent_vendor_error]")
        integration = (await storage.get_integrations(ORG))[0]
        assert integration.status == IntegrationStatus.ERROR
        assert scripts["vendor_a"].cleaned_up == 1

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_status(self, engine, storage, scripts, add_integration):
        """Test an unreachable vendor does not change the integration status."""
        await add_integration("vendor_a")
        scripts["vendor_a"].credential_error = ProviderError(ProviderErrorKind.TRANSIENT, "timeout")

        result = await engine.check_integrations(ORG)

        assert result.errors[0].startswith("[transient_vendor_error]")
        assert (await storage.get_integrations(ORG))[0].status == IntegrationStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_telephony_vendor_checked(self, engine, add_integration):
        """Test credential checks cover non-conversational vendors too."""
        await add_integration("phones", credentials={"account_sid": "AC1"})

        result = await engine.check_integrations(ORG)

        assert result.updated_count == 1
