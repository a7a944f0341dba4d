"""
Meta-gateway passthrough client

Forwards (vendor, method, path, body) to the gateway's passthrough
endpoint, which relays the call to the vendor with the tenant's stored
connection.
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from voxbridge.providers.errors import ProviderError, ProviderErrorKind
from voxbridge.providers.http import HttpClient


PASSTHROUGH_PATH = "/v1/passthrough"


class GatewayClient:
    """
    Passthrough client shared by all gateway adapters.

    One HttpClient is opened per vendor because the gateway identifies the
    target connection by header. Adapters acquire/release the client; the
    underlying connections close when the last adapter releases it.

    Args:
        base_url: Gateway root
        secret_key: Gateway secret
        connection_keys: {vendor: connection key}
        timeout: Request timeout in seconds
        max_retries: Attempts for transient failures
        retry_delay: Base delay for exponential backoff
        transport: Custom httpx transport
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        connection_keys: Dict[str, str],
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        self.connection_keys = {k: v for k, v in connection_keys.items() if v}
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.transport = transport
        self.logger = logger.bind(component="gateway")
        self._clients: Dict[str, HttpClient] = {}
        self._users = 0

    def has_connection(self, vendor: str) -> bool:
        return bool(self.secret_key) and vendor in self.connection_keys

    def _client_for(self, vendor: str) -> HttpClient:
        client = self._clients.get(vendor)
        if client is not None:
            return client

        if not self.has_connection(vendor):
            raise ProviderError(
                ProviderErrorKind.NOT_CONFIGURED,
                f"No gateway connection configured for {vendor}",
                provider_id=vendor,
            )
        client = HttpClient(
            base_url=f"{self.base_url}{PASSTHROUGH_PATH}",
            provider_id=vendor,
            headers={
                "x-pica-secret": self.secret_key,
                "x-pica-connection-key": self.connection_keys[vendor],
            },
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            transport=self.transport,
        )
        self._clients[vendor] = client
        return client

    async def request(
        self,
        vendor: str,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        form: bool = False,
    ) -> Any:
        """
        Forward a JSON (or form-encoded) request.

        Args:
            vendor: Target vendor (selects the connection key)
            method: HTTP method
            path: Vendor API path
            body: Request body (ignored for GET)
            form: Send the body form-encoded instead of JSON

        Returns:
            Decoded JSON response ({} for empty bodies)
        """
        client = self._client_for(vendor)
        self.logger.debug(f"Passthrough {vendor}: {method} {path}")
        kwargs: Dict[str, Any] = {}
        if body is not None and method != "GET":
            kwargs["data" if form else "json"] = body
        response = await client.request(method, path, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                ProviderErrorKind.PERMANENT, f"{path}: invalid JSON from gateway", vendor
            ) from e

    async def request_bytes(self, vendor: str, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> bytes:
        client = self._client_for(vendor)
        response = await client.request(method, path, json=body)
        return response.content

    async def upload(self, vendor: str, path: str, data: Dict[str, Any], files: Dict[str, Any]) -> Any:
        return await self._client_for(vendor).post_multipart(path, data, files)

    def stream_lines(self, vendor: str, path: str, body: Dict[str, Any]):
        return self._client_for(vendor).stream_lines("POST", path, body)

    def acquire(self) -> None:
        self._users += 1

    async def release(self) -> None:
        self._users = max(0, self._users - 1)
        if self._users == 0:
            await self.aclose()

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
