"""
Backend adapters.

- base: the capability contract every adapter satisfies
- config: AdapterConfig (builtin | package | local) and its cache key
- factory: resolves configs to cached adapter instances
- memory: the built-in in-memory adapter (``mock``)
"""

from .base import (
    OPTIONAL_ADAPTER_HOOKS,
    REQUIRED_ADAPTER_METHODS,
    BaseFulfillmentAdapter,
    FulfillmentAdapter,
    OperationOutcome,
    missing_adapter_method,
)
from .config import (
    DEFAULT_EXPORT_NAME,
    AdapterConfig,
    BuiltinAdapterConfig,
    LocalAdapterConfig,
    PackageAdapterConfig,
    cache_key,
    parse_adapter_config,
)
from .factory import AdapterFactory
from .memory import InMemoryAdapter

BUILTIN_ADAPTERS = {
    "mock": InMemoryAdapter,
}


def create_adapter_factory() -> AdapterFactory:
    """Factory with every built-in adapter registered."""
    return AdapterFactory(builtins=dict(BUILTIN_ADAPTERS))


__all__ = [
    "BUILTIN_ADAPTERS",
    "DEFAULT_EXPORT_NAME",
    "OPTIONAL_ADAPTER_HOOKS",
    "REQUIRED_ADAPTER_METHODS",
    "AdapterConfig",
    "AdapterFactory",
    "BaseFulfillmentAdapter",
    "BuiltinAdapterConfig",
    "FulfillmentAdapter",
    "InMemoryAdapter",
    "LocalAdapterConfig",
    "OperationOutcome",
    "PackageAdapterConfig",
    "cache_key",
    "create_adapter_factory",
    "missing_adapter_method",
    "parse_adapter_config",
]
