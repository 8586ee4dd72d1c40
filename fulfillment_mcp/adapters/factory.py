"""
Adapter Factory.

Resolves an AdapterConfig to a live adapter instance and caches one
instance per canonical configuration:

    ┌────────────────────────────────────────────────────────────┐
    │                     create_adapter(config)                 │
    ├────────────────────────────────────────────────────────────┤
    │  1. key = cache_key(config)                                │
    │  2. cached? -> return the same instance                    │
    │  3. resolve constructor:                                   │
    │       builtin -> registered constructor by name            │
    │       package -> importlib.import_module + getattr         │
    │       local   -> load module from file + getattr           │
    │  4. construct with config.options                          │
    │  5. check every contract method is present                 │
    │  6. cache and return                                       │
    └────────────────────────────────────────────────────────────┘

Security:
    Package and local adapters execute arbitrary code with the full
    privileges of the server process. Only trusted operators may supply
    package or path locators; never accept them from tool callers.

Usage:
    factory = AdapterFactory()
    factory.register_builtin("mock", InMemoryAdapter)

    adapter = await factory.create_adapter({"type": "builtin", "name": "mock"})
    same = await factory.create_adapter({"type": "builtin", "name": "mock"})
    assert adapter is same
"""

from __future__ import annotations

import asyncio
import hashlib
import importlib
import importlib.util
import inspect
import logging
import sys
from typing import TYPE_CHECKING, Any, Callable

from ..errors import AdapterConfigurationError
from .base import missing_adapter_method
from .config import (
    DEFAULT_EXPORT_NAME,
    BuiltinAdapterConfig,
    LocalAdapterConfig,
    PackageAdapterConfig,
    cache_key,
    parse_adapter_config,
)

if TYPE_CHECKING:
    from .base import FulfillmentAdapter
    from .config import AdapterConfig

logger = logging.getLogger(__name__)

AdapterConstructor = Callable[[dict[str, Any]], Any]

LOCAL_ADAPTER_SUFFIXES = (".py",)


class AdapterFactory:
    """
    Creates and caches adapter instances.

    The cache is owned by the factory instance, which is owned by the
    RuntimeContext; there is no process-global cache.
    """

    def __init__(self, builtins: dict[str, AdapterConstructor] | None = None):
        self._builtins: dict[str, AdapterConstructor] = dict(builtins or {})
        self._instances: dict[str, FulfillmentAdapter] = {}

    # ==================== Built-in Registry ====================

    def register_builtin(self, name: str, constructor: AdapterConstructor) -> None:
        """Register a built-in adapter constructor under ``name``."""
        if name in self._builtins:
            logger.warning(f"[adapter_factory] Replacing built-in adapter: {name}")
        self._builtins[name] = constructor
        logger.debug(f"[adapter_factory] Registered built-in adapter: {name}")

    def available_adapters(self) -> list[str]:
        return sorted(self._builtins)

    # ==================== Creation ====================

    async def create_adapter(self, config: AdapterConfig | dict[str, Any]) -> FulfillmentAdapter:
        """
        Get the adapter for a config, constructing it on first use.

        Raises:
            AdapterConfigurationError: If the adapter cannot be located,
                loaded, constructed or does not satisfy the contract
        """
        config = parse_adapter_config(config)
        key = cache_key(config)

        cached = self._instances.get(key)
        if cached is not None:
            logger.debug(f"[adapter_factory] Reusing cached adapter: {key}")
            return cached

        constructor = self._resolve_constructor(config)
        adapter = self._construct(constructor, config, key)
        self._validate(adapter, key)

        # Another caller may have finished constructing while we were resolving
        existing = self._instances.setdefault(key, adapter)
        if existing is adapter:
            logger.info(f"[adapter_factory] Created adapter: {key}")
        return existing

    def get_instance(self, config: AdapterConfig | dict[str, Any]) -> FulfillmentAdapter | None:
        """Cache lookup without construction."""
        return self._instances.get(cache_key(parse_adapter_config(config)))

    async def remove_instance(self, config: AdapterConfig | dict[str, Any]) -> bool:
        """
        Disconnect and evict the cached adapter for a config.

        A disconnect failure is logged and the adapter is evicted anyway.

        Returns:
            True if an instance was evicted
        """
        key = cache_key(parse_adapter_config(config))
        adapter = self._instances.get(key)
        if adapter is None:
            return False

        try:
            await adapter.disconnect()
        except Exception as e:
            logger.warning(f"[adapter_factory] Failed to disconnect adapter during removal: {key}: {e}")

        self._instances.pop(key, None)
        logger.info(f"[adapter_factory] Removed adapter: {key}")
        return True

    async def clear_instances(self) -> list[BaseException]:
        """
        Disconnect and evict every cached adapter.

        Disconnect failures are collected, never raised, so one failing
        adapter does not stop the sweep.

        Returns:
            The disconnect failures, if any
        """
        adapters = list(self._instances.items())
        results = await asyncio.gather(
            *(adapter.disconnect() for _, adapter in adapters),
            return_exceptions=True,
        )
        failures: list[BaseException] = []
        for (key, _), result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.warning(f"[adapter_factory] Failed to disconnect adapter during clear: {key}: {result}")
                failures.append(result)

        self._instances.clear()
        logger.info(f"[adapter_factory] Cleared {len(adapters)} adapter(s)")
        return failures

    @property
    def cached_keys(self) -> list[str]:
        return list(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    # ==================== Resolution ====================

    def _resolve_constructor(self, config: AdapterConfig) -> AdapterConstructor:
        if isinstance(config, BuiltinAdapterConfig):
            return self._resolve_builtin(config)
        if isinstance(config, PackageAdapterConfig):
            return self._resolve_package(config)
        if isinstance(config, LocalAdapterConfig):
            return self._resolve_local(config)
        raise AdapterConfigurationError(
            f"Unknown adapter type: {getattr(config, 'type', None)}",
            "UNKNOWN_ADAPTER_TYPE",
        )

    def _resolve_builtin(self, config: BuiltinAdapterConfig) -> AdapterConstructor:
        constructor = self._builtins.get(config.name)
        if constructor is None:
            raise AdapterConfigurationError(
                f"Built-in adapter not found: {config.name}",
                "ADAPTER_NOT_FOUND",
                {"name": config.name, "available": self.available_adapters()},
            )
        return constructor

    def _resolve_package(self, config: PackageAdapterConfig) -> AdapterConstructor:
        try:
            module = importlib.import_module(config.package)
        except ImportError as e:
            raise AdapterConfigurationError(
                f"Failed to import adapter package '{config.package}': {e}",
                "PACKAGE_LOAD_ERROR",
                {"package": config.package},
            ) from e
        except Exception as e:
            raise AdapterConfigurationError(
                f"Error while loading adapter package '{config.package}': {e}",
                "PACKAGE_LOAD_ERROR",
                {"package": config.package},
            ) from e

        return self._extract_export(module, config.export_name, config.package)

    def _resolve_local(self, config: LocalAdapterConfig) -> AdapterConstructor:
        path = config.resolved_path
        if not path.exists():
            raise AdapterConfigurationError(
                f"Adapter file not found: {path}",
                "ADAPTER_FILE_NOT_FOUND",
                {"path": str(path)},
            )
        if path.is_dir():
            raise AdapterConfigurationError(
                f"Adapter path is a directory, expected a file: {path}",
                "INVALID_ADAPTER_PATH",
                {"path": str(path)},
            )
        if path.suffix not in LOCAL_ADAPTER_SUFFIXES:
            logger.warning(f"[adapter_factory] Unusual adapter file extension: {path.suffix or '(none)'}")

        digest = hashlib.sha1(str(path).encode()).hexdigest()[:12]
        module_name = f"fulfillment_mcp_local_adapter_{digest}"
        try:
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise ImportError(f"cannot create a module spec for {path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise AdapterConfigurationError(
                f"Failed to load local adapter from {path}: {e}",
                "LOCAL_LOAD_ERROR",
                {"path": str(path)},
            ) from e

        return self._extract_export(module, config.export_name, str(path))

    def _extract_export(self, module: Any, export_name: str | None, source: str) -> AdapterConstructor:
        name = export_name or DEFAULT_EXPORT_NAME
        constructor = getattr(module, name, None)
        if constructor is None:
            raise AdapterConfigurationError(
                f"Export '{name}' not found in {source}",
                "EXPORT_NOT_FOUND",
                {"source": source, "exportName": name},
            )
        if not callable(constructor):
            raise AdapterConfigurationError(
                f"Export '{name}' in {source} is not a class or factory",
                "INVALID_CONSTRUCTOR",
                {"source": source, "exportName": name},
            )
        return constructor

    # ==================== Construction ====================

    def _construct(self, constructor: AdapterConstructor, config: AdapterConfig, key: str) -> Any:
        try:
            adapter = constructor(dict(config.options))
        except AdapterConfigurationError:
            raise
        except Exception as e:
            raise AdapterConfigurationError(
                f"Failed to construct adapter {key}: {e}",
                "INVALID_CONSTRUCTOR",
                {"key": key},
            ) from e

        if inspect.isawaitable(adapter):
            if inspect.iscoroutine(adapter):
                adapter.close()
            raise AdapterConfigurationError(
                f"Adapter constructor for {key} returned an awaitable, expected an instance",
                "INVALID_CONSTRUCTOR",
                {"key": key},
            )
        return adapter

    def _validate(self, adapter: Any, key: str) -> None:
        missing = missing_adapter_method(adapter)
        if missing is not None:
            raise AdapterConfigurationError(
                f"Adapter {key} does not implement required method: {missing}",
                "INVALID_ADAPTER",
                {"missingMethod": missing},
            )

    def __repr__(self) -> str:
        return f"<AdapterFactory builtins={self.available_adapters()} cached={len(self._instances)}>"


__all__ = [
    "LOCAL_ADAPTER_SUFFIXES",
    "AdapterConstructor",
    "AdapterFactory",
]
