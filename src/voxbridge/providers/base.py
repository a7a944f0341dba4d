"""
Base provider class
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Any, FrozenSet, Optional
from loguru import logger

from voxbridge.providers.errors import not_configured


class ProviderCapability(str, Enum):
    """Capability sets a vendor adapter can implement"""
    CONVERSATIONAL_AI = "conversational_ai"
    TELEPHONY = "telephony"
    LLM = "llm"
    TTS = "tts"
    STT = "stt"

    @classmethod
    def parse(cls, value: str) -> Optional["ProviderCapability"]:
        """Return the capability named by value, or None"""
        try:
            return cls(value)
        except ValueError:
            return None


class BaseProvider(ABC):
    """
    Base provider class for all vendor adapters.

    A vendor adapter subclasses one or more capability interfaces
    (ConversationalAIProvider, TelephonyProvider, LLMProvider, TTSProvider,
    STTProvider). Each interface declares a ``capability`` class attribute;
    ``capabilities`` is the union over the class hierarchy, so callers can
    check ``supports()`` instead of calling a method and catching
    "not implemented".

    Lifecycle:
    - construct with static options (base URL, timeouts, transport)
    - ``await initialize(credentials)`` binds tenant or platform credentials
    - ``await cleanup()`` releases HTTP clients
    """

    capability: Optional[ProviderCapability] = None

    def __init__(self, name: Optional[str] = None, provider_id: Optional[str] = None):
        """
        Initialize provider.

        Args:
            name: Provider name for logging
            provider_id: Registry id (defaults to the @register_provider name)
        """
        registered = getattr(self.__class__, "_registered_name", None)
        self.provider_id = provider_id or registered or self.__class__.__name__
        self.name = name or self.provider_id
        self.logger = logger.bind(component=self.name)
        self._initialized = False

    @classmethod
    def declared_capabilities(cls) -> FrozenSet[ProviderCapability]:
        """Capabilities implemented by this class (no instantiation needed)"""
        return frozenset(
            klass.__dict__["capability"]
            for klass in cls.__mro__
            if klass.__dict__.get("capability") is not None
        )

    @property
    def capabilities(self) -> FrozenSet[ProviderCapability]:
        return self.declared_capabilities()

    def supports(self, capability: ProviderCapability) -> bool:
        """Whether this adapter implements the given capability"""
        return capability in self.capabilities

    @classmethod
    @abstractmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        """
        Return the credential schema for this provider.

        Used by ProviderFactory to validate integration credentials before
        initialize() is called.

        Returns:
            Dictionary describing required/optional config parameters

        Example:
            {
                "api_key": {
                    "type": "string",
                    "required": True,
                    "description": "Vendor API key"
                }
            }
        """
        pass

    @abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Bind credentials and open vendor clients.

        Args:
            config: Credential material matching get_config_schema()
        """
        pass

    async def cleanup(self) -> None:
        """Release vendor clients. Default implementation does nothing."""
        pass

    async def validate_credentials(self) -> None:
        """
        Check that the bound credential is accepted by the vendor.

        Raises:
            ProviderError: PERMANENT for a rejected credential,
                TRANSIENT when the vendor could not be reached
        """
        self._require_initialized()

    def is_initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise not_configured(self.provider_id, f"{self.name} not initialized")

    def get_config(self) -> Dict[str, Any]:
        """
        Get provider configuration (never includes credentials).

        Returns:
            Configuration dictionary
        """
        return {
            "provider": self.__class__.__name__,
            "provider_id": self.provider_id,
            "name": self.name,
            "capabilities": sorted(c.value for c in self.capabilities),
            "initialized": self._initialized,
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.provider_id})"

    def __repr__(self) -> str:
        return self.__str__()
