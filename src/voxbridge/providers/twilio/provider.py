"""
Twilio telephony provider implementation
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from voxbridge.providers.errors import ProviderError, ProviderErrorKind
from voxbridge.providers.http import HttpClient
from voxbridge.providers.registry import register_provider
from voxbridge.providers.telephony import OutboundCall, PhoneNumber, TelephonyProvider


TWILIO_BASE_URL = "https://api.twilio.com"


def parse_phone_number(item: Dict[str, Any]) -> PhoneNumber:
    """Normalize an IncomingPhoneNumber resource"""
    return PhoneNumber(
        id=item.get("sid") or "",
        phone_number=item.get("phone_number") or "",
        label=item.get("friendly_name"),
        capabilities=item.get("capabilities") or {},
        raw=item,
    )


@register_provider("twilio")
class TwilioProvider(TelephonyProvider):
    """
    Twilio telephony provider.

    Talks to the 2010-04-01 REST API with basic auth and form-encoded
    bodies. Credentials: ``{"account_sid": "...", "auth_token": "..."}``.
    """

    def __init__(
        self,
        base_url: str = TWILIO_BASE_URL,
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
        self.account_sid: Optional[str] = None
        self._account_path = ""
        self._client: Optional[HttpClient] = None

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        return {
            "account_sid": {
                "type": "string",
                "required": True,
                "description": "Twilio account SID"
            },
            "auth_token": {
                "type": "string",
                "required": True,
                "description": "Twilio auth token"
            },
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        account_sid = (config.get("account_sid") or "").strip()
        auth_token = (config.get("auth_token") or "").strip()
        if not account_sid or not auth_token:
            raise ProviderError(
                ProviderErrorKind.NOT_CONFIGURED, "Twilio credentials incomplete", self.provider_id
            )

        if self._client is not None:
            await self._client.aclose()

        self.account_sid = account_sid
        self._account_path = f"/Accounts/{quote(account_sid, safe='')}"
        self._client = HttpClient(
            base_url=f"{self.base_url.rstrip('/')}/2010-04-01",
            provider_id=self.provider_id,
            auth=(account_sid, auth_token),
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            transport=self.transport,
        )
        self._initialized = True
        self.logger.info(f"Twilio client initialized for account {account_sid}")

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
        await self.client.get_json(f"{self._account_path}.json")

    async def list_phone_numbers(self, agent_id: Optional[str] = None) -> List[PhoneNumber]:
        # Twilio numbers are not bound to agents; agent_id is ignored
        data = await self.client.get_json(f"{self._account_path}/IncomingPhoneNumbers.json", params={"PageSize": 100})
        return [parse_phone_number(item) for item in data.get("incoming_phone_numbers") or []]

    async def create_phone_number(self, data: Dict[str, Any]) -> PhoneNumber:
        form = {"PhoneNumber": data.get("phone_number")}
        if data.get("label"):
            form["FriendlyName"] = data["label"]
        if data.get("voice_url"):
            form["VoiceUrl"] = data["voice_url"]
        result = await self.client.post_form(f"{self._account_path}/IncomingPhoneNumbers.json", form)
        return parse_phone_number(result)

    async def delete_phone_number(self, phone_number_id: str) -> None:
        await self.client.delete(f"{self._account_path}/IncomingPhoneNumbers/{quote(phone_number_id, safe='')}.json")

    async def place_outbound_call(
        self,
        to_number: str,
        from_number: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> OutboundCall:
        """
        Place an outbound call.

        Args:
            to_number: Destination number
            from_number: Twilio number placing the call
            options: ``url`` (TwiML webhook) or ``twiml``, optional ``status_callback``
        """
        options = options or {}
        form: Dict[str, Any] = {"To": to_number, "From": from_number}
        if options.get("twiml"):
            form["Twiml"] = options["twiml"]
        elif options.get("url"):
            form["Url"] = options["url"]
        else:
            raise ProviderError(
                ProviderErrorKind.PERMANENT, "Outbound call needs a url or twiml", self.provider_id
            )
        if options.get("status_callback"):
            form["StatusCallback"] = options["status_callback"]

        data = await self.client.post_form(f"{self._account_path}/Calls.json", form)
        return OutboundCall(call_id=data.get("sid"), status=data.get("status") or "queued", raw=data)
