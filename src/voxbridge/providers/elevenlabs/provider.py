"""
ElevenLabs provider implementation

Reference adapter: conversational agents, TTS voices and the telephony
bridge (phone numbers, outbound calls through the vendor's Twilio link).
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from voxbridge.providers.conversational import (
    ConversationalAIProvider,
    RealtimeSession,
    RecordingResult,
    RemoteAgent,
    RemoteConversation,
)
from voxbridge.providers.elevenlabs.payload import parse_agent, parse_conversation, sanitize_api_key
from voxbridge.providers.errors import ProviderError, ProviderErrorKind
from voxbridge.providers.http import HttpClient
from voxbridge.providers.registry import register_provider
from voxbridge.providers.telephony import OutboundCall, PhoneNumber, TelephonyProvider
from voxbridge.providers.tts import TTSProvider, Voice


ELEVENLABS_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_TTS_MODEL = "eleven_multilingual_v2"

# Largest page the conversation and agent listings accept
MAX_PAGE_SIZE = 100


def _segment(value: str) -> str:
    return quote(str(value), safe="")


@register_provider("elevenlabs")
class ElevenLabsProvider(ConversationalAIProvider, TTSProvider, TelephonyProvider):
    """
    ElevenLabs provider implementation.

    Credentials: ``{"api_key": "..."}``. The key is sanitized before use
    because keys pasted from documents often carry smart punctuation.
    """

    def __init__(
        self,
        base_url: str = ELEVENLABS_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_conversation_pages: int = 50,
        name: Optional[str] = None,
    ):
        """
        Initialize ElevenLabs provider.

        Args:
            base_url: API root
            timeout: Request timeout in seconds
            max_retries: Attempts for transient failures
            retry_delay: Base delay for exponential backoff
            transport: Custom httpx transport
            max_conversation_pages: Pagination safety cap for listings
            name: Provider name for logging
        """
        super().__init__(name=name)
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.transport = transport
        self.max_conversation_pages = max_conversation_pages
        self._client: Optional[HttpClient] = None

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "api_key": {
                "type": "string",
                "required": True,
                "description": "ElevenLabs API key (xi-api-key)"
            },
            "base_url": {
                "type": "string",
                "default": ELEVENLABS_BASE_URL,
                "description": "Override the API root"
            },
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        api_key = sanitize_api_key(config.get("api_key") or "")
        if not api_key:
            raise ProviderError(
                ProviderErrorKind.NOT_CONFIGURED, "ElevenLabs API key is empty", self.provider_id
            )

        if self._client is not None:
            await self._client.aclose()

        self._client = HttpClient(
            base_url=config.get("base_url") or self.base_url,
            provider_id=self.provider_id,
            headers={"xi-api-key": api_key},
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            transport=self.transport,
        )
        self._initialized = True
        self.logger.info(f"ElevenLabs client initialized (key ***{api_key[-4:]})")

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._initialized = False

    @property
    def client(self) -> HttpClient:
        self._require_initialized()
        return self._client

    async def validate_credentials(self) -> None:
        await self.client.get_json("/v1/user")

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def create_agent(self, agent_data: Dict[str, Any]) -> RemoteAgent:
        data = await self.client.post_json("/v1/convai/agents/create", agent_data)
        agent_id = data.get("agent_id")
        if agent_id and "conversation_config" not in data:
            # Create only echoes the id
            return await self.get_agent(agent_id)
        return parse_agent(data)

    async def update_agent(self, agent_id: str, updates: Dict[str, Any]) -> RemoteAgent:
        data = await self.client.patch_json(f"/v1/convai/agents/{_segment(agent_id)}", updates)
        return parse_agent(data)

    async def delete_agent(self, agent_id: str) -> None:
        await self.client.delete(f"/v1/convai/agents/{_segment(agent_id)}")

    async def get_agent(self, agent_id: str) -> RemoteAgent:
        data = await self.client.get_json(f"/v1/convai/agents/{_segment(agent_id)}")
        return parse_agent(data)

    async def list_agents(self) -> List[RemoteAgent]:
        items = await self._paginate("/v1/convai/agents", "agents", {}, limit=None)
        return [parse_agent(item) for item in items]

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def list_conversations(
        self,
        agent_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[RemoteConversation]:
        params: Dict[str, Any] = {}
        if agent_id:
            params["agent_id"] = agent_id
        items = await self._paginate("/v1/convai/conversations", "conversations", params, limit=limit)
        return [parse_conversation(item) for item in items]

    async def get_conversation(self, conversation_id: str) -> RemoteConversation:
        data = await self.client.get_json(f"/v1/convai/conversations/{_segment(conversation_id)}")
        return parse_conversation(data)

    async def get_transcript(self, conversation_id: str) -> Any:
        """Transcript turns are embedded in the conversation detail record"""
        data = await self.client.get_json(f"/v1/convai/conversations/{_segment(conversation_id)}")
        return data.get("transcript") or []

    async def get_recording(self, conversation_id: str) -> RecordingResult:
        try:
            audio = await self.client.get_bytes(
                f"/v1/convai/conversations/{_segment(conversation_id)}/audio"
            )
        except ProviderError as e:
            if e.is_not_found:
                self.logger.info(f"No recording for conversation {conversation_id} (404)")
                return RecordingResult.not_found()
            self.logger.warning(f"Recording fetch failed for {conversation_id}: {e}")
            return RecordingResult.failed(str(e))

        if not audio:
            return RecordingResult.failed("empty recording body")
        self.logger.debug(f"Fetched {len(audio)} bytes of audio for {conversation_id}")
        return RecordingResult.found(audio)

    async def _paginate(
        self,
        path: str,
        key: str,
        params: Dict[str, Any],
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        """
        Follow cursor pagination.

        Stops at limit, when the vendor reports no more pages, or after
        max_conversation_pages pages.
        """
        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        if limit is not None and limit <= 0:
            return items

        for _ in range(self.max_conversation_pages):
            page_params = dict(params)
            remaining = MAX_PAGE_SIZE if limit is None else limit - len(items)
            page_params["page_size"] = min(MAX_PAGE_SIZE, remaining)
            if cursor:
                page_params["cursor"] = cursor

            data = await self.client.get_json(path, params=page_params)
            if isinstance(data, list):
                items.extend(data)
                break

            items.extend(data.get(key) or [])
            cursor = data.get("next_cursor")
            if limit is not None and len(items) >= limit:
                break
            if not data.get("has_more") or not cursor:
                break
        else:
            self.logger.warning(f"{path}: stopped after {self.max_conversation_pages} pages")

        return items if limit is None else items[:limit]

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    async def create_realtime_session(
        self,
        agent_id: str,
        enable_microphone: bool = True,
    ) -> RealtimeSession:
        data = await self.client.get_json(
            "/v1/convai/conversation/get-signed-url",
            params={"agent_id": agent_id},
        )
        return RealtimeSession(
            agent_id=agent_id,
            url=data.get("signed_url"),
            token=data.get("token"),
            raw={**data, "enable_microphone": enable_microphone},
        )

    # ------------------------------------------------------------------
    # TTS
    # ------------------------------------------------------------------

    async def list_voices(self) -> List[Voice]:
        data = await self.client.get_json("/v1/voices")
        return [
            Voice(
                voice_id=item.get("voice_id"),
                name=item.get("name") or "",
                category=item.get("category"),
                preview_url=item.get("preview_url"),
                raw=item,
            )
            for item in data.get("voices") or []
            if item.get("voice_id")
        ]

    async def synthesize(
        self,
        text: str,
        voice_id: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        options = options or {}
        payload = {"text": text, "model_id": options.get("model_id", DEFAULT_TTS_MODEL)}
        if "voice_settings" in options:
            payload["voice_settings"] = options["voice_settings"]
        return await self.client.post_bytes(
            f"/v1/text-to-speech/{_segment(voice_id)}",
            payload,
            headers={"Accept": "audio/mpeg"},
        )

    # ------------------------------------------------------------------
    # Telephony
    # ------------------------------------------------------------------

    async def list_phone_numbers(self, agent_id: Optional[str] = None) -> List[PhoneNumber]:
        params = {"agent_id": agent_id} if agent_id else None
        data = await self.client.get_json("/v1/convai/phone-numbers", params=params)
        items = data if isinstance(data, list) else data.get("phone_numbers") or []
        return [self._parse_phone_number(item) for item in items]

    async def create_phone_number(self, data: Dict[str, Any]) -> PhoneNumber:
        result = await self.client.post_json("/v1/convai/phone-numbers", data)
        return self._parse_phone_number({**data, **result})

    async def delete_phone_number(self, phone_number_id: str) -> None:
        await self.client.delete(f"/v1/convai/phone-numbers/{_segment(phone_number_id)}")

    async def place_outbound_call(
        self,
        to_number: str,
        from_number: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> OutboundCall:
        """
        Place an outbound call through the vendor's Twilio bridge.

        Args:
            to_number: Destination number
            from_number: ElevenLabs phone number id
            options: Must contain ``agent_id``
        """
        options = options or {}
        agent_id = options.get("agent_id")
        if not agent_id:
            raise ProviderError(
                ProviderErrorKind.PERMANENT, "agent_id is required for outbound calls", self.provider_id
            )
        payload = {
            "agent_id": agent_id,
            "agent_phone_number_id": from_number,
            "to_number": to_number,
        }
        data = await self.client.post_json("/v1/convai/twilio/outbound-call", payload)
        return OutboundCall(
            call_id=data.get("callSid") or data.get("conversation_id"),
            status="queued" if data.get("success", True) else "failed",
            raw=data,
        )

    @staticmethod
    def _parse_phone_number(item: Dict[str, Any]) -> PhoneNumber:
        assigned = item.get("assigned_agent") or {}
        return PhoneNumber(
            id=item.get("phone_number_id") or item.get("id") or "",
            phone_number=item.get("phone_number") or "",
            label=item.get("label"),
            agent_id=assigned.get("agent_id") or item.get("agent_id"),
            capabilities={
                "inbound": item.get("supports_inbound", True),
                "outbound": item.get("supports_outbound", True),
            },
            raw=item,
        )
