"""
Synchronization engine

Pulls agents and conversations from every active conversational-AI
integration of a tenant and upserts them into local storage.

Processing order:
- integrations of a tenant are processed one after another
- conversations of an integration are processed one after another, each
  fully (including its audio fetch) before the next one starts

Errors are caught per record and per integration and accumulated into the
result; only a failure to load the tenant's integrations fails the whole
operation.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from voxbridge.audio.pipeline import AudioFetchOutcome, AudioFetchPipeline
from voxbridge.audio.store import AudioArtifactStore
from voxbridge.config.schema import SyncConfig, VoxbridgeConfig
from voxbridge.providers.base import BaseProvider, ProviderCapability
from voxbridge.providers.conversational import ConversationalAIProvider, RemoteConversation
from voxbridge.providers.errors import ProviderError, ProviderErrorKind
from voxbridge.providers.factory import ProviderFactory
from voxbridge.storage.base import PersistenceError, SyncStorage
from voxbridge.storage.models import (
    Agent,
    AudioFetchStatus,
    CallLog,
    Integration,
    IntegrationStatus,
    utcnow,
)
from voxbridge.sync.result import (
    DashboardSyncResult,
    FullSyncResult,
    Stopwatch,
    SyncErrorKind,
    SyncResult,
)


IntegrationHandler = Callable[[ConversationalAIProvider, Integration, SyncResult, Any], Awaitable[None]]

# Audio statuses re-fetched by resync_missing_audio; AVAILABLE is included
# only when the stored file is gone
_RESYNC_STATUSES = (None, AudioFetchStatus.PENDING, AudioFetchStatus.FAILED, AudioFetchStatus.AVAILABLE)


def classify_error(error: BaseException) -> SyncErrorKind:
    """Map an exception onto the sync error taxonomy"""
    if isinstance(error, ProviderError):
        return {
            ProviderErrorKind.NOT_CONFIGURED: SyncErrorKind.NOT_CONFIGURED,
            ProviderErrorKind.NOT_FOUND: SyncErrorKind.NOT_FOUND,
            ProviderErrorKind.TRANSIENT: SyncErrorKind.TRANSIENT_VENDOR_ERROR,
            ProviderErrorKind.PERMANENT: SyncErrorKind.PERMANENT_VENDOR_ERROR,
        }[error.kind]
    if isinstance(error, PersistenceError):
        return SyncErrorKind.PERSISTENCE_ERROR
    return SyncErrorKind.TRANSIENT_VENDOR_ERROR


class SyncEngine:
    """
    Reconciles vendor state into local storage.

    Args:
        storage: Persistence collaborator
        audio_store: Recording store
        factory: Adapter factory (per-integration adapters are built from it)
        config: Application config; sync settings default when omitted
    """

    def __init__(
        self,
        storage: SyncStorage,
        audio_store: AudioArtifactStore,
        factory: ProviderFactory,
        config: Optional[VoxbridgeConfig] = None,
    ):
        self.storage = storage
        self.audio_store = audio_store
        self.factory = factory
        self.config: SyncConfig = config.sync if config is not None else SyncConfig()
        self.pipeline = AudioFetchPipeline(audio_store, storage)
        self.logger = logger.bind(component="SyncEngine")
        # Dashboard composites still running after their caller timed out
        self._detached: Set[asyncio.Task] = set()
        # (organization_id, call_id) pairs with an audio fetch running
        self._audio_in_flight: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Integration iteration
    # ------------------------------------------------------------------

    async def _eligible_integrations(self, organization_id: str, capability: Optional[ProviderCapability]) -> List[Integration]:
        """
        Active integrations with credentials whose adapter class implements capability.

        Raises:
            Exception: storage failure (engine-level, propagates)
        """
        log = self.logger.bind(org_id=organization_id)
        eligible = []
        for integration in await self.storage.get_integrations(organization_id):
            if not integration.is_active:
                log.debug(f"Skipping {integration.vendor_id} integration {integration.id}: {integration.status.value}")
                continue
            if not integration.credentials:
                log.info(f"Skipping {integration.vendor_id} integration {integration.id}: not configured")
                continue
            if capability is not None and not self.factory.supports(integration.vendor_id, capability):
                log.debug(f"Skipping {integration.vendor_id}: no {capability.value} capability")
                continue
            eligible.append(integration)
        return eligible

    async def _open_adapter(self, integration: Integration, result: SyncResult) -> Optional[BaseProvider]:
        """
        Build and initialize the integration's adapter.

        Missing or malformed credentials skip the integration without
        counting an error; vendor failures are counted.
        """
        log = self.logger.bind(org_id=integration.organization_id)
        try:
            return await self.factory.create_initialized(integration.vendor_id, integration.credentials)
        except (ValueError, TypeError) as e:
            log.warning(f"Skipping {integration.vendor_id} integration {integration.id}: {e}")
        except ProviderError as e:
            if e.kind == ProviderErrorKind.NOT_CONFIGURED:
                log.warning(f"Skipping {integration.vendor_id} integration {integration.id}: {e}")
            else:
                log.error(f"Could not initialize {integration.vendor_id} integration {integration.id}: {e}")
                result.add_error(classify_error(e), f"{integration.vendor_id} integration {integration.id}: {e}")
        return None

    async def _close_adapter(self, provider: BaseProvider) -> None:
        try:
            await provider.cleanup()
        except Exception as e:
            self.logger.warning(f"Cleanup of {provider} failed: {e}")

    async def _for_each_integration(
        self,
        organization_id: str,
        operation: str,
        handler: IntegrationHandler,
        context: Any = None,
    ) -> SyncResult:
        stopwatch = Stopwatch()
        result = SyncResult()
        log = self.logger.bind(org_id=organization_id)
        log.info(f"Starting {operation}")

        try:
            integrations = await self._eligible_integrations(organization_id, ProviderCapability.CONVERSATIONAL_AI)
        except Exception as e:
            log.error(f"{operation} failed: could not load integrations: {e}")
            result.success = False
            result.add_error(SyncErrorKind.PERSISTENCE_ERROR, f"Could not load integrations: {e}")
            result.duration = stopwatch.elapsed_ms()
            return result

        if not integrations:
            log.info(f"{operation}: no active conversational integrations")

        for integration in integrations:
            provider = await self._open_adapter(integration, result)
            if provider is None:
                continue
            try:
                await handler(provider, integration, result, context)
            except Exception as e:
                log.error(f"{operation} failed for {integration.vendor_id} integration {integration.id}: {e}")
                result.add_error(classify_error(e), f"{integration.vendor_id} integration {integration.id}: {e}")
                continue
            finally:
                await self._close_adapter(provider)

            try:
                await self.storage.update_integration_status(
                    integration.id, organization_id, last_synced_at=utcnow()
                )
            except Exception as e:
                result.add_error(
                    SyncErrorKind.PERSISTENCE_ERROR,
                    f"Could not update {integration.vendor_id} integration {integration.id}: {e}",
                )

        result.duration = stopwatch.elapsed_ms()
        log.info(
            f"{operation} done: {result.synced_count} created, {result.updated_count} updated, "
            f"{result.error_count} errors in {result.duration}ms"
        )
        return result

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def sync_agents(self, organization_id: str) -> SyncResult:
        """
        Mirror remote agents of every conversational integration.

        Args:
            organization_id: Tenant

        Returns:
            SyncResult (synced = created, updated = refreshed)
        """
        return await self._for_each_integration(organization_id, "agent sync", self._sync_integration_agents)

    async def _sync_integration_agents(
        self,
        provider: ConversationalAIProvider,
        integration: Integration,
        result: SyncResult,
        context: Any,
    ) -> None:
        organization_id = integration.organization_id
        log = self.logger.bind(org_id=organization_id)
        remote_agents = await provider.list_agents()
        log.info(f"{integration.vendor_id}: {len(remote_agents)} remote agents")

        for remote in remote_agents:
            if not remote.external_id:
                result.add_error(SyncErrorKind.MISSING_KEY, f"{integration.vendor_id} agent without id ({remote.name})")
                continue

            fields = {
                "name": remote.name,
                "voice_id": remote.voice_id,
                "prompt": remote.prompt,
                "first_message": remote.first_message,
                "language": remote.language,
                "vendor_id": integration.vendor_id,
                "last_synced_at": utcnow(),
            }
            try:
                existing = await self.storage.get_agent_by_external_id(remote.external_id, organization_id)
                if existing is not None:
                    if existing.vendor_id and existing.vendor_id != integration.vendor_id:
                        result.add_error(
                            SyncErrorKind.ID_COLLISION,
                            f"Agent {remote.external_id} from {integration.vendor_id} "
                            f"already belongs to {existing.vendor_id}",
                        )
                        continue
                    await self.storage.update_agent(existing.id, organization_id, fields)
                    result.updated_count += 1
                else:
                    await self.storage.create_agent(
                        Agent(organization_id=organization_id, external_id=remote.external_id, **fields)
                    )
                    result.synced_count += 1
            except Exception as e:
                log.error(f"Agent {remote.external_id}: {e}")
                result.add_error(classify_error(e), f"Agent {remote.external_id}: {e}")

    # ------------------------------------------------------------------
    # Call logs
    # ------------------------------------------------------------------

    async def sync_call_logs(
        self,
        organization_id: str,
        agent_id: Optional[str] = None,
        limit: Optional[int] = None,
        include_transcripts: Optional[bool] = None,
    ) -> SyncResult:
        """
        Mirror recent conversations into CallLogs.

        Args:
            organization_id: Tenant
            agent_id: Restrict to one vendor agent
            limit: Conversations per integration (default: sync.call_log_limit)
            include_transcripts: Fetch transcripts (default: sync.include_transcripts)

        Returns:
            SyncResult (synced = created, updated = refreshed)
        """
        options = {
            "agent_id": agent_id,
            "limit": limit if limit is not None else self.config.call_log_limit,
            "include_transcripts": (
                include_transcripts if include_transcripts is not None else self.config.include_transcripts
            ),
        }
        return await self._for_each_integration(
            organization_id, "call log sync", self._sync_integration_call_logs, options
        )

    async def _sync_integration_call_logs(
        self,
        provider: ConversationalAIProvider,
        integration: Integration,
        result: SyncResult,
        options: Dict[str, Any],
    ) -> None:
        log = self.logger.bind(org_id=integration.organization_id)
        conversations = await provider.list_conversations(agent_id=options["agent_id"], limit=options["limit"])
        log.info(f"{integration.vendor_id}: {len(conversations)} conversations")

        for summary in conversations:
            await self._sync_conversation(provider, integration, summary, result, options)

    async def _sync_conversation(
        self,
        provider: ConversationalAIProvider,
        integration: Integration,
        summary: RemoteConversation,
        result: SyncResult,
        options: Dict[str, Any],
    ) -> None:
        organization_id = integration.organization_id
        log = self.logger.bind(org_id=organization_id)
        conversation_id = summary.conversation_id
        if not conversation_id:
            log.warning(f"{integration.vendor_id}: skipping conversation without id")
            result.add_error(SyncErrorKind.MISSING_KEY, f"{integration.vendor_id} conversation without id")
            return

        try:
            existing = await self.storage.get_call_log_by_conversation_id(organization_id, conversation_id)
            if existing is not None and existing.vendor_id and existing.vendor_id != integration.vendor_id:
                result.add_error(
                    SyncErrorKind.ID_COLLISION,
                    f"Conversation {conversation_id} from {integration.vendor_id} "
                    f"already belongs to {existing.vendor_id}",
                )
                return

            detail = await self._fetch_detail(provider, summary)
            vendor_agent_id = detail.agent_id or summary.agent_id or options["agent_id"]
            agent_link: Dict[str, Any] = {}
            try:
                agent_link["agent_id"] = await self._local_agent_id(vendor_agent_id, organization_id)
            except Exception as e:
                log.warning(f"Agent lookup for {vendor_agent_id} failed, keeping stored agent link: {e}")
            transcript = None
            if options["include_transcripts"]:
                transcript = await self._fetch_transcript(provider, conversation_id, organization_id)

            fields: Dict[str, Any] = {
                "vendor_id": integration.vendor_id,
                **agent_link,
                "phone_number": detail.phone_number,
                "status": detail.status,
                "duration": detail.duration_seconds,
                "cost": detail.cost,
                "started_at": detail.started_at,
            }
            if transcript is not None:
                fields["transcript"] = transcript
            if detail.recording_url and not (existing is not None and existing.audio_storage_key):
                fields["recording_url"] = detail.recording_url

            if existing is not None:
                record = await self.storage.update_call_log(existing.id, organization_id, fields)
                result.updated_count += 1
                log.debug(f"Updated call log {existing.id} for conversation {conversation_id}")
            else:
                record = await self.storage.create_call_log(
                    CallLog(organization_id=organization_id, conversation_id=conversation_id, **fields)
                )
                result.synced_count += 1
                log.debug(f"Created call log {record.id} for conversation {conversation_id}")
        except Exception as e:
            log.error(f"Conversation {conversation_id}: {e}")
            result.add_error(classify_error(e), f"Conversation {conversation_id}: {e}")
            return

        if record is None:
            return
        if record.audio_storage_key or record.audio_fetch_status == AudioFetchStatus.UNAVAILABLE:
            return
        outcome = await self._fetch_audio(provider, conversation_id, record.id, organization_id)
        if outcome is not None:
            log.debug(f"Audio for {conversation_id}: {outcome.status.value}")

    async def _fetch_detail(self, provider: ConversationalAIProvider, summary: RemoteConversation) -> RemoteConversation:
        """Detail record, or the list summary when the detail fetch fails"""
        try:
            detail = await provider.get_conversation(summary.conversation_id)
        except Exception as e:
            self.logger.warning(f"Detail fetch for {summary.conversation_id} failed, using list data: {e}")
            return summary
        if not detail.conversation_id:
            detail.conversation_id = summary.conversation_id
        return detail

    async def _local_agent_id(self, vendor_agent_id: Optional[str], organization_id: str) -> Optional[str]:
        """
        Local agent id for a vendor agent id.

        Raises:
            Exception: storage failure
        """
        if not vendor_agent_id:
            return None
        agent = await self.storage.get_agent_by_external_id(vendor_agent_id, organization_id)
        if agent is None:
            self.logger.bind(org_id=organization_id).debug(f"No local agent for {vendor_agent_id}")
            return None
        return agent.id

    async def _fetch_transcript(
        self,
        provider: ConversationalAIProvider,
        conversation_id: str,
        organization_id: str,
    ) -> Optional[str]:
        try:
            transcript = await provider.get_transcript(conversation_id)
        except Exception as e:
            self.logger.bind(org_id=organization_id).warning(f"Transcript for {conversation_id} unavailable: {e}")
            return None
        if transcript is None:
            return None
        return json.dumps(transcript, default=str)

    # ------------------------------------------------------------------
    # Composite operations
    # ------------------------------------------------------------------

    async def sync_dashboard(self, organization_id: str, agent_id: Optional[str] = None) -> DashboardSyncResult:
        """
        Agents then a small page of call logs without transcripts, under a deadline.

        On timeout the caller gets a failed result immediately; the running
        sync is left to finish in the background.
        """
        stopwatch = Stopwatch()
        timeout = self.config.dashboard_timeout_seconds
        log = self.logger.bind(org_id=organization_id)

        async def composite():
            agents = await self.sync_agents(organization_id)
            call_logs = await self.sync_call_logs(
                organization_id,
                agent_id=agent_id,
                limit=self.config.dashboard_page_size,
                include_transcripts=False,
            )
            return agents, call_logs

        task = asyncio.ensure_future(composite())
        try:
            agents, call_logs = await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            message = f"Sync operation timed out after {timeout:g} seconds"
            log.warning(f"Dashboard sync: {message}")
            self._detach(task)
            return DashboardSyncResult(
                success=False,
                agents=SyncResult(success=False),
                call_logs=SyncResult(success=False),
                errors=[message],
                total_duration=stopwatch.elapsed_ms(),
            )

        return DashboardSyncResult(
            success=agents.success and call_logs.success,
            agents=agents,
            call_logs=call_logs,
            errors=agents.errors + call_logs.errors,
            total_duration=stopwatch.elapsed_ms(),
        )

    def _detach(self, task: asyncio.Task) -> None:
        self._detached.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._detached.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                self.logger.error(f"Detached dashboard sync failed: {finished.exception()}")

        task.add_done_callback(_done)

    async def sync_all(self, organization_id: str) -> FullSyncResult:
        """
        Run every sync category concurrently.

        Categories: agents, call_logs, audio (missing recordings) and
        integrations (credential check). An exception in one category is
        recorded without cancelling the others.
        """
        stopwatch = Stopwatch()
        log = self.logger.bind(org_id=organization_id)
        categories = {
            "agents": self.sync_agents(organization_id),
            "call_logs": self.sync_call_logs(organization_id),
            "audio": self.resync_missing_audio(organization_id),
            "integrations": self.check_integrations(organization_id),
        }
        outcomes = await asyncio.gather(*categories.values(), return_exceptions=True)

        results: Dict[str, SyncResult] = {}
        errors: List[str] = []
        for name, outcome in zip(categories, outcomes):
            if isinstance(outcome, BaseException):
                log.error(f"{name} sync raised: {outcome!r}")
                failed = SyncResult(success=False)
                failed.add_error(classify_error(outcome), f"{name} sync failed: {outcome}")
                results[name] = failed
                errors.append(f"{name} sync failed: {outcome}")
            else:
                results[name] = outcome
                errors.extend(f"{name}: {error}" for error in outcome.errors)

        return FullSyncResult(
            success=any(r.success for r in results.values()),
            results=results,
            errors=errors,
            duration=stopwatch.elapsed_ms(),
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def resync_missing_audio(self, organization_id: str) -> SyncResult:
        """
        Re-run the audio pipeline for CallLogs without a stored recording.

        Covers unset, pending and failed statuses plus available ones whose
        file is gone. Unavailable recordings are never retried. Each call is
        attempted up to audio_resync_max_retries times with linear backoff.

        Returns:
            SyncResult (synced = recordings recovered)
        """
        stopwatch = Stopwatch()
        result = SyncResult()
        log = self.logger.bind(org_id=organization_id)

        try:
            candidates = await self.storage.list_call_logs(organization_id, audio_statuses=_RESYNC_STATUSES)
            integrations = await self._eligible_integrations(organization_id, ProviderCapability.CONVERSATIONAL_AI)
        except Exception as e:
            log.error(f"Audio resync failed: {e}")
            result.success = False
            result.add_error(SyncErrorKind.PERSISTENCE_ERROR, f"Could not load call logs: {e}")
            result.duration = stopwatch.elapsed_ms()
            return result

        missing: List[CallLog] = []
        for call in candidates:
            if await self._has_stored_audio(call):
                continue
            if call.audio_fetch_status == AudioFetchStatus.AVAILABLE:
                log.warning(f"Recording file for call {call.id} is missing, refetching")
            missing.append(call)
        log.info(f"Audio resync: {len(missing)} call logs without a stored recording")

        by_vendor: Dict[str, Integration] = {}
        for integration in integrations:
            by_vendor.setdefault(integration.vendor_id, integration)

        groups: Dict[str, List[CallLog]] = {}
        for call in missing:
            vendor_id = call.vendor_id
            if vendor_id is None and len(by_vendor) == 1:
                vendor_id = next(iter(by_vendor))
            if vendor_id not in by_vendor:
                log.debug(f"No active integration for call {call.id} ({call.vendor_id}), skipping")
                continue
            groups.setdefault(vendor_id, []).append(call)

        for vendor_id, calls in groups.items():
            provider = await self._open_adapter(by_vendor[vendor_id], result)
            if provider is None:
                continue
            try:
                for call in calls:
                    await self._refetch_audio(provider, call, result)
            finally:
                await self._close_adapter(provider)

        result.duration = stopwatch.elapsed_ms()
        log.info(f"Audio resync done: {result.synced_count} recovered, {result.error_count} errors")
        return result

    async def _has_stored_audio(self, call: CallLog) -> bool:
        if call.audio_fetch_status != AudioFetchStatus.AVAILABLE or not call.audio_storage_key:
            return False
        return await self.audio_store.exists(call.audio_storage_key)

    async def _fetch_audio(
        self,
        provider: ConversationalAIProvider,
        conversation_id: str,
        call_id: str,
        organization_id: str,
    ) -> Optional[AudioFetchOutcome]:
        """
        Run the audio pipeline for one call unless it is no longer needed.

        Skips calls whose fetch is already running in another operation and
        calls that are unavailable or already stored, so a status never moves
        back from available.

        Returns:
            Pipeline outcome, or None when skipped
        """
        log = self.logger.bind(org_id=organization_id)
        key = (organization_id, call_id)
        if key in self._audio_in_flight:
            log.debug(f"[{conversation_id}] Audio fetch already running")
            return None
        self._audio_in_flight.add(key)
        try:
            try:
                current = await self.storage.get_call_log_by_conversation_id(organization_id, conversation_id)
            except Exception as e:
                log.warning(f"[{conversation_id}] Could not reload call log before audio fetch: {e}")
                return None
            if current is None or current.audio_fetch_status == AudioFetchStatus.UNAVAILABLE:
                return None
            if await self._has_stored_audio(current):
                return None
            return await self.pipeline.fetch_and_store(provider, conversation_id, call_id, organization_id)
        finally:
            self._audio_in_flight.discard(key)

    async def _refetch_audio(self, provider: ConversationalAIProvider, call: CallLog, result: SyncResult) -> None:
        max_retries = max(1, self.config.audio_resync_max_retries)
        outcome = None
        for attempt in range(1, max_retries + 1):
            outcome = await self._fetch_audio(provider, call.conversation_id, call.id, call.organization_id)
            if outcome is None or outcome.status == AudioFetchStatus.UNAVAILABLE:
                return
            if outcome.success:
                result.synced_count += 1
                return
            if attempt < max_retries:
                await asyncio.sleep(self.config.audio_resync_retry_delay * attempt)

        result.add_error(
            SyncErrorKind.TRANSIENT_VENDOR_ERROR,
            f"Recording for conversation {call.conversation_id} still missing after "
            f"{max_retries} attempts: {outcome.error if outcome else 'unknown error'}",
        )

    async def check_integrations(self, organization_id: str) -> SyncResult:
        """
        Validate the credential of every active integration.

        A rejected credential marks the integration ``error``; a valid one
        refreshes last_synced_at.

        Returns:
            SyncResult (updated = integrations validated)
        """
        stopwatch = Stopwatch()
        result = SyncResult()
        log = self.logger.bind(org_id=organization_id)

        try:
            integrations = await self._eligible_integrations(organization_id, None)
        except Exception as e:
            result.success = False
            result.add_error(SyncErrorKind.PERSISTENCE_ERROR, f"Could not load integrations: {e}")
            result.duration = stopwatch.elapsed_ms()
            return result

        for integration in integrations:
            provider = await self._open_adapter(integration, result)
            if provider is None:
                continue
            try:
                await provider.validate_credentials()
                await self.storage.update_integration_status(
                    integration.id, organization_id, last_synced_at=utcnow()
                )
                result.updated_count += 1
            except ProviderError as e:
                result.add_error(classify_error(e), f"{integration.vendor_id} integration {integration.id}: {e}")
                if e.kind == ProviderErrorKind.PERMANENT:
                    log.warning(f"{integration.vendor_id} credential rejected, marking integration as error")
                    await self._mark_integration_error(integration, result)
            except Exception as e:
                result.add_error(classify_error(e), f"{integration.vendor_id} integration {integration.id}: {e}")
            finally:
                await self._close_adapter(provider)

        result.duration = stopwatch.elapsed_ms()
        return result

    async def _mark_integration_error(self, integration: Integration, result: SyncResult) -> None:
        try:
            await self.storage.update_integration_status(
                integration.id, integration.organization_id, status=IntegrationStatus.ERROR
            )
        except Exception as e:
            result.add_error(SyncErrorKind.PERSISTENCE_ERROR, f"Could not mark integration {integration.id}: {e}")


__all__ = ["SyncEngine", "classify_error"]
