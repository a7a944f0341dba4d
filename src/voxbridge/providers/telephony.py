"""
Telephony provider interface
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from voxbridge.providers.base import BaseProvider, ProviderCapability


@dataclass
class PhoneNumber:
    """Phone number provisioned at the vendor"""
    id: str
    phone_number: str
    label: Optional[str] = None
    agent_id: Optional[str] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class OutboundCall:
    """Result of placing an outbound call"""
    call_id: Optional[str]
    status: str = "queued"
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class TelephonyProvider(BaseProvider):
    """
    Telephony provider interface.

    Manages phone numbers and places outbound calls.
    """

    capability = ProviderCapability.TELEPHONY

    @abstractmethod
    async def list_phone_numbers(self, agent_id: Optional[str] = None) -> List[PhoneNumber]:
        pass

    @abstractmethod
    async def create_phone_number(self, data: Dict[str, Any]) -> PhoneNumber:
        pass

    @abstractmethod
    async def delete_phone_number(self, phone_number_id: str) -> None:
        pass

    @abstractmethod
    async def place_outbound_call(
        self,
        to_number: str,
        from_number: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> OutboundCall:
        """
        Place an outbound call.

        Args:
            to_number: Destination in E.164 format
            from_number: Caller id / vendor phone number reference
            options: Vendor-specific options (agent id, callback URL, ...)
        """
        pass
