"""
Provider factory for creating adapters from integrations and configuration
"""

import os
import re
from typing import Any, Dict, Mapping, Optional, Type
from loguru import logger

from voxbridge.providers.base import BaseProvider, ProviderCapability
from voxbridge.providers.registry import ProviderCatalog, ProviderRegistry


class ProviderFactory:
    """
    Adapter factory.

    Looks up adapter classes by vendor id and constructs them with static
    per-vendor options (timeouts, retries, HTTP transport). Credentials are
    bound separately through initialize(), so one factory serves every tenant.

    Args:
        catalog: {vendor_id: adapter class}; defaults to the @register_provider catalog
        options: {vendor_id: constructor kwargs}
        default_options: Constructor kwargs applied to every adapter
    """

    def __init__(
        self,
        catalog: Optional[Mapping[str, Type[BaseProvider]]] = None,
        options: Optional[Dict[str, Dict[str, Any]]] = None,
        default_options: Optional[Dict[str, Any]] = None,
    ):
        self._catalog = catalog
        self.options = options or {}
        self.default_options = default_options or {}

    def _classes(self) -> Mapping[str, Type[BaseProvider]]:
        if self._catalog is not None:
            return self._catalog
        return ProviderCatalog.list_providers()

    def get_class(self, vendor_id: str) -> Type[BaseProvider]:
        """
        Get the adapter class for a vendor.

        Raises:
            ValueError: Vendor not registered
        """
        classes = self._classes()
        provider_class = classes.get(vendor_id)
        if provider_class is None:
            raise ValueError(
                f"Provider '{vendor_id}' not found. "
                f"Available providers: {sorted(classes.keys())}"
            )
        return provider_class

    def supports(self, vendor_id: str, capability: ProviderCapability) -> bool:
        """Whether the vendor's adapter class implements capability (no instantiation)"""
        provider_class = self._classes().get(vendor_id)
        if provider_class is None:
            return False
        return capability in provider_class.declared_capabilities()

    def create(self, vendor_id: str) -> BaseProvider:
        """
        Construct an uninitialized adapter.

        Args:
            vendor_id: Vendor id (e.g., "elevenlabs")

        Returns:
            Adapter instance

        Raises:
            ValueError: Vendor not registered
            TypeError: Invalid constructor options
        """
        provider_class = self.get_class(vendor_id)
        kwargs = {**self.default_options, **self.options.get(vendor_id, {})}
        try:
            provider = provider_class(**kwargs)
        except TypeError as e:
            raise TypeError(f"Invalid options for provider '{vendor_id}': {e}")

        logger.debug(
            f"Created provider: {vendor_id} "
            f"[{', '.join(sorted(c.value for c in provider.capabilities))}]"
        )
        return provider

    async def create_initialized(self, vendor_id: str, credentials: Dict[str, Any]) -> BaseProvider:
        """
        Construct an adapter and bind credentials.

        Args:
            vendor_id: Vendor id
            credentials: Credential material matching the adapter's config schema

        Returns:
            Initialized adapter

        Raises:
            ValueError: Vendor not registered or required credential missing
            TypeError: Credential of the wrong type
            ProviderError: initialize() rejected the credential
        """
        provider_class = self.get_class(vendor_id)
        validate_config(credentials, provider_class.get_config_schema(), vendor_id)

        provider = self.create(vendor_id)
        try:
            await provider.initialize(credentials)
        except Exception:
            await provider.cleanup()
            raise
        return provider


def validate_config(config: Dict[str, Any], schema: Dict[str, Any], provider_name: str) -> None:
    """
    Validate configuration against schema.

    Args:
        config: Configuration dictionary
        schema: Schema dictionary
        provider_name: Provider name for error messages

    Raises:
        ValueError: Missing required config
        TypeError: Wrong type for config value
    """
    for key, spec in schema.items():
        if spec.get("required", False) and config.get(key) in (None, ""):
            raise ValueError(
                f"Provider '{provider_name}' missing required config: {key}"
            )

        if config.get(key) is not None:
            value = config[key]
            expected_type = spec.get("type")

            if expected_type == "string" and not isinstance(value, str):
                raise TypeError(
                    f"Provider '{provider_name}' config '{key}' must be string, got {type(value)}"
                )
            elif expected_type == "float" and not isinstance(value, (int, float)):
                raise TypeError(
                    f"Provider '{provider_name}' config '{key}' must be number, got {type(value)}"
                )
            elif expected_type == "int" and not isinstance(value, int):
                raise TypeError(
                    f"Provider '{provider_name}' config '{key}' must be integer, got {type(value)}"
                )
            elif expected_type == "bool" and not isinstance(value, bool):
                raise TypeError(
                    f"Provider '{provider_name}' config '{key}' must be boolean, got {type(value)}"
                )


_ENV_VAR_PATTERN = re.compile(r"\$\{([^:}]+)(?::([^}]*))?\}")


def expand_env_vars(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand environment variables in config values.

    Supports:
    - ${VAR_NAME} - use environment variable (error if not set)
    - ${VAR_NAME:default} - use default if not set
    - ${VAR_NAME:} - empty string if not set

    Args:
        config: Configuration dictionary (nested dicts are expanded too)

    Returns:
        New dictionary with expanded values

    Raises:
        ValueError: A required variable is not set
    """
    def replace_env(match):
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            if default_value:
                logger.debug(f"Environment variable {var_name} not set, using default: {default_value}")
            return default_value
        logger.error(f"Required environment variable {var_name} not set!")
        raise ValueError(f"Required environment variable {var_name} not set")

    expanded: Dict[str, Any] = {}
    for key, value in config.items():
        if isinstance(value, str):
            expanded[key] = _ENV_VAR_PATTERN.sub(replace_env, value)
        elif isinstance(value, dict):
            expanded[key] = expand_env_vars(value)
        else:
            expanded[key] = value
    return expanded


async def bootstrap_registry(config, factory: ProviderFactory) -> ProviderRegistry:
    """
    Build the process-wide registry from configuration.

    Direct adapters from the ``providers:`` section are registered first.
    When the gateway is enabled, its passthrough adapters are registered
    afterwards and supersede direct adapters with the same id and capability.
    Adapters that fail to build are logged and skipped.

    Args:
        config: VoxbridgeConfig
        factory: Factory used for direct adapters

    Returns:
        Populated ProviderRegistry
    """
    from voxbridge.providers.gateway import create_gateway_adapters

    registry = ProviderRegistry()

    for name, provider_config in config.providers.items():
        if not provider_config.enabled:
            logger.debug(f"Provider {name} disabled, skipping")
            continue
        try:
            credentials = expand_env_vars(provider_config.config)
            provider = await factory.create_initialized(provider_config.type, credentials)
            registry.register(provider)
        except Exception as e:
            logger.error(f"Failed to create provider '{name}' ({provider_config.type}): {e}")

    gateway = config.gateway
    if gateway.enabled:
        try:
            settings = expand_env_vars(gateway.model_dump())
            adapters = await create_gateway_adapters(
                settings,
                http_options={**factory.default_options, **factory.options.get("gateway", {})},
            )
            for adapter in adapters:
                registry.register(adapter)
        except Exception as e:
            logger.error(f"Failed to create gateway adapters: {e}")

    logger.info(f"Provider registry ready: {registry.list_providers()}")
    return registry
