"""
Provider error normalization

Every vendor failure surfaces as a ProviderError carrying one of four kinds.
The synchronization engine keys its skip/retry decisions off the kind, so
adapters must never leak raw HTTP or SDK exceptions.
"""

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    """Normalized vendor failure categories"""
    NOT_CONFIGURED = "not_configured"   # adapter not initialized / credential missing
    NOT_FOUND = "not_found"             # vendor confirms the resource does not exist
    TRANSIENT = "transient"             # network, timeout, rate limit, 5xx
    PERMANENT = "permanent"             # rejected credential, bad request


class ProviderError(Exception):
    """
    Vendor failure normalized into a ProviderErrorKind.

    Attributes:
        kind: Normalized category
        provider_id: Adapter that raised the error
        status_code: HTTP status when the failure came from a response
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider_id = provider_id
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return self.kind == ProviderErrorKind.TRANSIENT

    @property
    def is_not_found(self) -> bool:
        return self.kind == ProviderErrorKind.NOT_FOUND

    def __str__(self) -> str:
        prefix = f"{self.provider_id}: " if self.provider_id else ""
        status = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{prefix}{self.message}{status}"

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value}, message={self.message!r}, provider_id={self.provider_id!r})"


_TRANSIENT_STATUSES = {408, 409, 425, 429}


def classify_status(status_code: int) -> ProviderErrorKind:
    """
    Map an HTTP error status to a ProviderErrorKind.

    Args:
        status_code: HTTP status (>= 400)

    Returns:
        404 -> NOT_FOUND, 401/403 -> PERMANENT, 408/409/425/429 and 5xx ->
        TRANSIENT, any other 4xx -> PERMANENT
    """
    if status_code == 404:
        return ProviderErrorKind.NOT_FOUND
    if status_code in _TRANSIENT_STATUSES or status_code >= 500:
        return ProviderErrorKind.TRANSIENT
    return ProviderErrorKind.PERMANENT


def not_configured(provider_id: str, message: Optional[str] = None) -> ProviderError:
    """Build the error raised when an adapter is used before initialize()"""
    return ProviderError(
        ProviderErrorKind.NOT_CONFIGURED,
        message or "provider not initialized",
        provider_id=provider_id,
    )


class ProviderNotFoundError(LookupError):
    """No adapter registered under the requested id or capability tag"""


class NoProviderForCapabilityError(LookupError):
    """No adapter registered for the requested capability"""
