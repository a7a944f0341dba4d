"""
Shared vendor HTTP client

Wraps httpx.AsyncClient with:
- retry with exponential backoff for transient failures (tenacity)
- no retry for 4xx responses other than rate limits and timeouts
- every failure normalized into a ProviderError
"""

from collections.abc import AsyncIterator
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from voxbridge.providers.errors import ProviderError, ProviderErrorKind, classify_status


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.is_transient


def _error_message(response: httpx.Response) -> str:
    """Best-effort human readable message from an error response"""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] if text else response.reason_phrase

    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message") or value.get("status")
            if value:
                return str(value)
    return str(body)[:200]


class HttpClient:
    """
    Vendor HTTP client.

    Args:
        base_url: Vendor API root
        provider_id: Adapter id attached to raised errors
        headers: Default headers (auth, content type)
        auth: httpx auth (e.g. basic auth tuple)
        timeout: Request timeout in seconds
        max_retries: Total attempts for transient failures
        retry_delay: Base delay of the exponential backoff, in seconds
        transport: Custom httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        provider_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Any = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_id = provider_id
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = logger.bind(component=f"{provider_id or 'http'}-http")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Args:
            method: HTTP method
            path: Path relative to base_url
            **kwargs: Passed to httpx (params, json, data, files, headers)

        Returns:
            Successful (< 400) response

        Raises:
            ProviderError: Classified failure after the last attempt
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, max=30),
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    self.logger.warning(f"Retrying {method} {path} ({number}/{self.max_retries})")
                return await self._send(method, path, **kwargs)

        raise ProviderError(ProviderErrorKind.TRANSIENT, f"{method} {path} failed", self.provider_id)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderError(
                ProviderErrorKind.TRANSIENT, f"{method} {path} timed out: {e}", self.provider_id
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                ProviderErrorKind.TRANSIENT, f"{method} {path} failed: {e}", self.provider_id
            ) from e

        if response.status_code >= 400:
            raise self._status_error(method, path, response)
        return response

    def _status_error(self, method: str, path: str, response: httpx.Response) -> ProviderError:
        return ProviderError(
            classify_status(response.status_code),
            f"{method} {path}: {_error_message(response)}",
            provider_id=self.provider_id,
            status_code=response.status_code,
        )

    # Convenience wrappers

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request("GET", path, params=params)
        return self._decode(response, path)

    async def post_json(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request("POST", path, json=payload or {})
        return self._decode(response, path)

    async def patch_json(self, path: str, payload: Dict[str, Any]) -> Any:
        response = await self.request("PATCH", path, json=payload)
        return self._decode(response, path)

    async def delete(self, path: str) -> None:
        await self.request("DELETE", path)

    async def get_bytes(self, path: str, params: Optional[Dict[str, Any]] = None) -> bytes:
        response = await self.request("GET", path, params=params)
        return response.content

    async def post_bytes(self, path: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> bytes:
        response = await self.request("POST", path, json=payload, headers=headers)
        return response.content

    async def post_form(self, path: str, data: Dict[str, Any]) -> Any:
        response = await self.request("POST", path, data=data)
        return self._decode(response, path)

    async def post_multipart(self, path: str, data: Dict[str, Any], files: Dict[str, Any]) -> Any:
        response = await self.request("POST", path, data=data, files=files)
        return self._decode(response, path)

    async def stream_lines(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]:
        """
        Stream response lines (server-sent events).

        The stream is not retried once opened.

        Yields:
            Non-empty response lines
        """
        try:
            async with self._client.stream(method, path, json=payload) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._status_error(method, path, response)
                async for line in response.aiter_lines():
                    if line:
                        yield line
        except httpx.HTTPError as e:
            raise ProviderError(
                ProviderErrorKind.TRANSIENT, f"{method} {path} stream failed: {e}", self.provider_id
            ) from e

    def _decode(self, response: httpx.Response, path: str) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                ProviderErrorKind.PERMANENT,
                f"{path}: invalid JSON response",
                provider_id=self.provider_id,
                status_code=response.status_code,
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()
