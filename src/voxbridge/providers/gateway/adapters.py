"""
Gateway passthrough adapters

Each adapter reuses the id of the vendor it reaches, so registering it
after the direct adapter supersedes that adapter for the same capability.
"""

from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from voxbridge.providers.base import BaseProvider
from voxbridge.providers.errors import not_configured
from voxbridge.providers.gateway.client import GatewayClient
from voxbridge.providers.llm import LLMProvider, build_messages
from voxbridge.providers.openai.provider import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_STT_MODEL,
    parse_completion,
    parse_stream_line,
)
from voxbridge.providers.stt import STTProvider
from voxbridge.providers.telephony import OutboundCall, PhoneNumber, TelephonyProvider
from voxbridge.providers.tts import TTSProvider, Voice
from voxbridge.providers.twilio.provider import parse_phone_number


class GatewayAdapter(BaseProvider):
    """
    Common lifecycle for gateway adapters.

    Credentials live in the gateway configuration, so initialize() only
    checks that a connection exists for the target vendor.
    """

    vendor: str = ""

    def __init__(self, gateway: GatewayClient, name: Optional[str] = None):
        super().__init__(name=name or f"{self.vendor}-gateway", provider_id=self.vendor)
        self.gateway = gateway

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {}

    async def initialize(self, config: Dict[str, Any]) -> None:
        if not self.gateway.has_connection(self.vendor):
            raise not_configured(self.provider_id, f"No gateway connection for {self.vendor}")
        if not self._initialized:
            self.gateway.acquire()
        self._initialized = True

    async def cleanup(self) -> None:
        if self._initialized:
            self._initialized = False
            await self.gateway.release()

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None, form: bool = False) -> Any:
        self._require_initialized()
        return await self.gateway.request(self.vendor, method, path, body, form=form)


class GatewayTelephonyAdapter(GatewayAdapter, TelephonyProvider):
    """Twilio telephony through the gateway"""

    vendor = "twilio"

    def __init__(self, gateway: GatewayClient, account_sid: str = "", name: Optional[str] = None):
        super().__init__(gateway, name=name)
        self.account_sid = account_sid

    async def initialize(self, config: Dict[str, Any]) -> None:
        self.account_sid = config.get("account_sid") or self.account_sid
        if not self.account_sid:
            raise not_configured(self.provider_id, "Twilio account SID missing for gateway")
        await super().initialize(config)

    @property
    def _account_path(self) -> str:
        return f"/2010-04-01/Accounts/{quote(self.account_sid, safe='')}"

    async def list_phone_numbers(self, agent_id: Optional[str] = None) -> List[PhoneNumber]:
        data = await self._request("GET", f"{self._account_path}/IncomingPhoneNumbers.json")
        return [parse_phone_number(item) for item in data.get("incoming_phone_numbers") or []]

    async def create_phone_number(self, data: Dict[str, Any]) -> PhoneNumber:
        form = {"PhoneNumber": data.get("phone_number")}
        if data.get("label"):
            form["FriendlyName"] = data["label"]
        result = await self._request("POST", f"{self._account_path}/IncomingPhoneNumbers.json", form, form=True)
        return parse_phone_number(result)

    async def delete_phone_number(self, phone_number_id: str) -> None:
        await self._request(
            "DELETE", f"{self._account_path}/IncomingPhoneNumbers/{quote(phone_number_id, safe='')}.json"
        )

    async def place_outbound_call(
        self,
        to_number: str,
        from_number: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> OutboundCall:
        options = options or {}
        form = {"To": to_number, "From": from_number}
        if options.get("twiml"):
            form["Twiml"] = options["twiml"]
        if options.get("url"):
            form["Url"] = options["url"]
        data = await self._request("POST", f"{self._account_path}/Calls.json", form, form=True)
        return OutboundCall(call_id=data.get("sid"), status=data.get("status") or "queued", raw=data)


class GatewayLLMAdapter(GatewayAdapter, LLMProvider):
    """OpenAI chat completions through the gateway"""

    vendor = "openai"

    def _payload(self, prompt: str, context, options: Dict[str, Any], stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": options.pop("model", None) or DEFAULT_CHAT_MODEL,
            "messages": build_messages(prompt, context),
        }
        if stream:
            payload["stream"] = True
        payload.update(options)
        return payload

    async def generate(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]] = None,
        **options: Any,
    ) -> str:
        data = await self._request("POST", "/v1/chat/completions", self._payload(prompt, context, options, False))
        return parse_completion(data)

    async def stream_generate(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]] = None,
        **options: Any,
    ) -> AsyncIterator[str]:
        self._require_initialized()
        payload = self._payload(prompt, context, options, True)
        async for line in self.gateway.stream_lines(self.vendor, "/v1/chat/completions", payload):
            delta = parse_stream_line(line)
            if delta is None:
                break
            if delta:
                yield delta


class GatewayTTSAdapter(GatewayAdapter, TTSProvider):
    """ElevenLabs speech synthesis through the gateway"""

    vendor = "elevenlabs"

    async def list_voices(self) -> List[Voice]:
        data = await self._request("GET", "/v1/voices")
        return [
            Voice(
                voice_id=item["voice_id"],
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
        self._require_initialized()
        options = options or {}
        payload = {"text": text, "model_id": options.get("model_id", "eleven_multilingual_v2")}
        return await self.gateway.request_bytes(
            self.vendor, "POST", f"/v1/text-to-speech/{quote(voice_id, safe='')}", payload
        )


class GatewaySTTAdapter(GatewayAdapter, STTProvider):
    """OpenAI Whisper transcription through the gateway"""

    vendor = "openai"

    async def transcribe(
        self,
        audio: bytes,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        self._require_initialized()
        options = options or {}
        data = {"model": options.get("model", DEFAULT_STT_MODEL)}
        if options.get("language"):
            data["language"] = options["language"]
        files = {"file": (options.get("filename", "audio.mp3"), audio, "audio/mpeg")}
        result = await self.gateway.upload(self.vendor, "/v1/audio/transcriptions", data, files)
        return result.get("text") or ""


_HTTP_OPTION_KEYS = ("timeout", "max_retries", "retry_delay", "transport")


async def create_gateway_adapters(
    settings: Dict[str, Any],
    http_options: Optional[Dict[str, Any]] = None,
) -> List[BaseProvider]:
    """
    Build and initialize the gateway adapters that have a connection.

    Args:
        settings: Gateway settings (GatewayConfig fields, env-expanded)
        http_options: HttpClient options (timeout, retries, transport)

    Returns:
        Initialized adapters, telephony first
    """
    http_options = {k: v for k, v in (http_options or {}).items() if k in _HTTP_OPTION_KEYS}
    gateway = GatewayClient(
        base_url=settings.get("base_url") or "https://api.picaos.com",
        secret_key=settings.get("secret_key") or "",
        connection_keys=settings.get("connection_keys") or {},
        **http_options,
    )

    candidates: List[GatewayAdapter] = [
        GatewayTelephonyAdapter(gateway, account_sid=settings.get("twilio_account_sid") or ""),
        GatewayLLMAdapter(gateway),
        GatewayTTSAdapter(gateway),
        GatewaySTTAdapter(gateway),
    ]

    adapters: List[BaseProvider] = []
    for adapter in candidates:
        if not gateway.has_connection(adapter.vendor):
            gateway.logger.info(f"No gateway connection for {adapter.vendor}, skipping {adapter.name}")
            continue
        try:
            await adapter.initialize({})
        except Exception as e:
            gateway.logger.warning(f"Gateway adapter {adapter.name} not initialized: {e}")
            continue
        adapters.append(adapter)
    return adapters
