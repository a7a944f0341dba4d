"""
OpenAI provider implementation

Chat completions (one-shot and SSE streaming) and audio transcription over
the public REST API.
"""

import json
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional

import httpx

from voxbridge.providers.errors import ProviderError, ProviderErrorKind
from voxbridge.providers.http import HttpClient
from voxbridge.providers.llm import LLMProvider, build_messages
from voxbridge.providers.registry import register_provider
from voxbridge.providers.stt import STTProvider


OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_STT_MODEL = "whisper-1"


def parse_completion(data: Dict[str, Any]) -> str:
    """Extract the assistant text from a chat completion"""
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


def parse_stream_line(line: str) -> Optional[str]:
    """
    Extract the text delta from one SSE line.

    Returns:
        Delta text, "" for lines without content, None at end of stream
    """
    if not line.startswith("data:"):
        return ""
    payload = line[len("data:"):].strip()
    if payload == "[DONE]":
        return None
    try:
        chunk = json.loads(payload)
    except ValueError:
        return ""
    choices = chunk.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("delta") or {}).get("content") or ""


@register_provider("openai")
class OpenAIProvider(LLMProvider, STTProvider):
    """
    OpenAI provider.

    Credentials: ``{"api_key": "...", "model": "...", "organization": "..."}``.
    """

    def __init__(
        self,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        name: Optional[str] = None,
    ):
        super().__init__(name=name)
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.transport = transport
        self.model = DEFAULT_CHAT_MODEL
        self._client: Optional[HttpClient] = None

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "api_key": {
                "type": "string",
                "required": True,
                "description": "OpenAI API key"
            },
            "model": {
                "type": "string",
                "default": DEFAULT_CHAT_MODEL,
                "description": "Default chat model"
            },
            "organization": {
                "type": "string",
                "description": "OpenAI organization id"
            },
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        api_key = (config.get("api_key") or "").strip()
        if not api_key:
            raise ProviderError(
                ProviderErrorKind.NOT_CONFIGURED, "OpenAI API key is empty", self.provider_id
            )

        headers = {"Authorization": f"Bearer {api_key}"}
        if config.get("organization"):
            headers["OpenAI-Organization"] = config["organization"]

        if self._client is not None:
            await self._client.aclose()

        self.model = config.get("model") or DEFAULT_CHAT_MODEL
        self._client = HttpClient(
            base_url=self.base_url,
            provider_id=self.provider_id,
            headers=headers,
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            transport=self.transport,
        )
        self._initialized = True
        self.logger.info(f"OpenAI client initialized (model={self.model})")

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
        await self.client.get_json("/models")

    def _chat_payload(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]],
        options: Dict[str, Any],
        stream: bool,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": options.pop("model", None) or self.model,
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
        data = await self.client.post_json(
            "/chat/completions", self._chat_payload(prompt, context, options, stream=False)
        )
        return parse_completion(data)

    async def stream_generate(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]] = None,
        **options: Any,
    ) -> AsyncIterator[str]:
        payload = self._chat_payload(prompt, context, options, stream=True)
        async for line in self.client.stream_lines("POST", "/chat/completions", payload):
            delta = parse_stream_line(line)
            if delta is None:
                break
            if delta:
                yield delta

    async def transcribe(
        self,
        audio: bytes,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        options = options or {}
        data = {"model": options.get("model", DEFAULT_STT_MODEL)}
        if options.get("language"):
            data["language"] = options["language"]
        filename = options.get("filename", "audio.mp3")
        files = {"file": (filename, audio, options.get("content_type", "audio/mpeg"))}

        result = await self.client.post_multipart("/audio/transcriptions", data, files)
        return result.get("text") or ""
