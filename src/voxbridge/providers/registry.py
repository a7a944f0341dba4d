"""
Provider registry and adapter catalog

ProviderCatalog maps a vendor id to its adapter class and is filled at
import time by @register_provider. ProviderRegistry holds initialized
adapter instances for one process and is passed explicitly to consumers.
"""

from typing import Dict, List, Optional, Tuple, Type, Union
from loguru import logger

from voxbridge.providers.base import BaseProvider, ProviderCapability
from voxbridge.providers.errors import NoProviderForCapabilityError, ProviderNotFoundError


ProviderRef = Union[ProviderCapability, str]


class ProviderCatalog:
    """
    Catalog of adapter classes, keyed by vendor id.

    Supports:
    - Built-in adapter auto-registration
    - Custom adapter registration
    - Adapter class lookup by vendor id
    """

    _providers: Dict[str, Type[BaseProvider]] = {}

    @classmethod
    def register(cls, vendor_id: str, provider_class: Type[BaseProvider]):
        """
        Register an adapter class.

        Args:
            vendor_id: Vendor identifier (e.g., "elevenlabs")
            provider_class: Adapter class

        Raises:
            ValueError: If vendor id already registered
            TypeError: If provider_class doesn't inherit BaseProvider
        """
        if vendor_id in cls._providers:
            raise ValueError(f"Provider '{vendor_id}' already registered")

        if not isinstance(provider_class, type) or not issubclass(provider_class, BaseProvider):
            raise TypeError(f"{provider_class} must inherit from BaseProvider")

        cls._providers[vendor_id] = provider_class
        logger.debug(f"Registered provider class: {vendor_id} ({provider_class.__name__})")

    @classmethod
    def get(cls, vendor_id: str) -> Optional[Type[BaseProvider]]:
        return cls._providers.get(vendor_id)

    @classmethod
    def list_providers(cls, capability: Optional[ProviderCapability] = None) -> Dict[str, Type[BaseProvider]]:
        """
        List registered adapter classes.

        Args:
            capability: Only classes implementing this capability, None for all

        Returns:
            Dictionary of {vendor_id: provider_class}
        """
        if capability is None:
            return cls._providers.copy()
        return {
            vendor_id: provider_class
            for vendor_id, provider_class in cls._providers.items()
            if capability in provider_class.declared_capabilities()
        }

    @classmethod
    def is_registered(cls, vendor_id: str) -> bool:
        return vendor_id in cls._providers


def register_provider(vendor_id: str):
    """
    Decorator for registering adapter classes.

    Usage:
        @register_provider("elevenlabs")
        class ElevenLabsProvider(ConversationalAIProvider, TTSProvider):
            ...

    The registered id is also used as the adapter's default provider_id.

    Args:
        vendor_id: Vendor identifier (used in integrations and config files)
    """
    def decorator(provider_class: Type[BaseProvider]):
        ProviderCatalog.register(vendor_id, provider_class)
        provider_class._registered_name = vendor_id
        return provider_class
    return decorator


class ProviderRegistry:
    """
    Registry of initialized adapter instances.

    Entries are keyed by (capability, provider_id): an adapter implementing
    several capabilities is indexed under each of them. Registering under an
    existing key replaces the earlier adapter with a warning, which lets a
    gateway passthrough adapter supersede a direct one registered at startup.

    Registration happens during single-threaded startup; lookups afterwards
    are read-only, so no locking is used.
    """

    def __init__(self):
        self._entries: Dict[Tuple[ProviderCapability, str], BaseProvider] = {}
        # Replaced adapters, released by cleanup() once nothing references them
        self._retired: List[BaseProvider] = []
        self.logger = logger.bind(component="ProviderRegistry")

    def register(self, provider: BaseProvider) -> None:
        """
        Register an adapter under every capability it implements.

        Args:
            provider: Adapter instance (normally already initialized)
        """
        capabilities = sorted(provider.capabilities, key=lambda c: c.value)
        if not capabilities:
            self.logger.warning(f"Provider {provider.provider_id} declares no capabilities, not registered")
            return

        for capability in capabilities:
            key = (capability, provider.provider_id)
            previous = self._entries.get(key)
            if previous is not None and previous is not provider:
                self.logger.warning(
                    f"Provider {provider.provider_id} ({capability.value}) already registered "
                    f"as {previous}, overwriting with {provider}"
                )
            # Replacement keeps the registration position of the key
            self._entries[key] = provider
            if previous is not None and previous is not provider and previous not in self._entries.values():
                self._retired.append(previous)

        self.logger.info(
            f"Registered provider: {provider.provider_id} "
            f"[{', '.join(c.value for c in capabilities)}]"
        )

    def get_by_id(
        self,
        provider_id: str,
        capability: Optional[ProviderCapability] = None,
    ) -> BaseProvider:
        """
        Look up an adapter by id.

        Falls back to treating provider_id as a capability tag and returns the
        default adapter of that type.

        Args:
            provider_id: Adapter id or capability tag
            capability: Restrict the exact lookup to one capability

        Raises:
            ProviderNotFoundError: Neither the id nor the tag resolves
        """
        if capability is not None:
            provider = self._entries.get((capability, provider_id))
            if provider is not None:
                return provider
        else:
            for (_, entry_id), provider in self._entries.items():
                if entry_id == provider_id:
                    return provider

        tag = ProviderCapability.parse(provider_id)
        if tag is not None and (capability is None or capability == tag):
            providers = self.get_all_by_type(tag)
            if providers:
                return providers[0]

        raise ProviderNotFoundError(f"Provider '{provider_id}' not found")

    def resolve(self, ref: ProviderRef) -> BaseProvider:
        """
        Resolve a typed reference.

        A ProviderCapability resolves to the default adapter of that type, a
        string resolves as an exact adapter id.
        """
        if isinstance(ref, ProviderCapability):
            return self.get_default_by_type(ref)
        for (_, entry_id), provider in self._entries.items():
            if entry_id == ref:
                return provider
        raise ProviderNotFoundError(f"Provider '{ref}' not found")

    def get_all_by_type(self, capability: ProviderCapability) -> List[BaseProvider]:
        """All adapters implementing capability, in registration order"""
        providers: List[BaseProvider] = []
        for (entry_capability, _), provider in self._entries.items():
            if entry_capability == capability and provider not in providers:
                providers.append(provider)
        return providers

    def get_default_by_type(self, capability: ProviderCapability) -> BaseProvider:
        providers = self.get_all_by_type(capability)
        if not providers:
            raise NoProviderForCapabilityError(f"No provider registered for {capability.value}")
        return providers[0]

    def list_providers(self) -> Dict[str, List[str]]:
        """
        Summarize registered adapters.

        Returns:
            Dictionary of {capability: [provider_id, ...]}
        """
        summary: Dict[str, List[str]] = {}
        for capability, provider_id in self._entries:
            summary.setdefault(capability.value, []).append(provider_id)
        return summary

    def providers(self) -> List[BaseProvider]:
        """Distinct adapter instances, in registration order"""
        unique: List[BaseProvider] = []
        for provider in self._entries.values():
            if provider not in unique:
                unique.append(provider)
        return unique

    async def cleanup(self) -> None:
        """Release every registered adapter, including replaced ones"""
        retired, self._retired = self._retired, []
        for provider in self.providers() + [p for p in retired if p not in self._entries.values()]:
            try:
                await provider.cleanup()
            except Exception as e:
                self.logger.error(f"Error cleaning up {provider}: {e}")

    def __contains__(self, provider_id: object) -> bool:
        return any(entry_id == provider_id for _, entry_id in self._entries)

    def __len__(self) -> int:
        return len(self._entries)
