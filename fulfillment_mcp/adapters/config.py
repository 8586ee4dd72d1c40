"""
Adapter Configuration.

An AdapterConfig locates the code for one backend adapter. It is a tagged
union over three sources:

- builtin: an adapter registered with the factory by name
- package: an importable module plus the name of the attribute to use
- local: a Python file on disk plus the name of the attribute to use

Each variant carries an opaque ``options`` mapping handed to the adapter's
constructor. Configs are frozen; the cache key derived from a config is
independent of option insertion order.

Usage:
    config = parse_adapter_config({"type": "builtin", "name": "mock"})
    key = cache_key(config)   # "builtin:mock"
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import AdapterConfigurationError

DEFAULT_EXPORT_NAME = "Adapter"


class _AdapterConfigBase(BaseModel):
    options: dict[str, Any] = Field(default_factory=dict, description="Adapter constructor options")

    class Config:
        frozen = True
        extra = "forbid"

    @property
    def locator(self) -> str:
        raise NotImplementedError


class BuiltinAdapterConfig(_AdapterConfigBase):
    """Adapter shipped with the server and registered by name."""

    type: Literal["builtin"] = "builtin"
    name: str = Field(..., min_length=1, description="Registered adapter name")

    @property
    def locator(self) -> str:
        return self.name


class PackageAdapterConfig(_AdapterConfigBase):
    """Adapter importable as ``package`` (dotted module path)."""

    type: Literal["package"] = "package"
    package: str = Field(..., min_length=1, description="Dotted module path")
    export_name: str | None = Field(None, description="Attribute holding the adapter class")

    @property
    def locator(self) -> str:
        return f"{self.package}:{self.export_name or DEFAULT_EXPORT_NAME}"


class LocalAdapterConfig(_AdapterConfigBase):
    """Adapter defined in a Python file on disk."""

    type: Literal["local"] = "local"
    path: str = Field(..., min_length=1, description="Path to the adapter module file")
    export_name: str | None = Field(None, description="Attribute holding the adapter class")

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser().resolve()

    @property
    def locator(self) -> str:
        return f"{self.resolved_path}:{self.export_name or DEFAULT_EXPORT_NAME}"


AdapterConfig = Annotated[
    Union[BuiltinAdapterConfig, PackageAdapterConfig, LocalAdapterConfig],
    Field(discriminator="type"),
]

_adapter_config_type: TypeAdapter = TypeAdapter(AdapterConfig)

# Field each variant cannot do without, with the error code for its absence
_REQUIRED_LOCATORS = {
    "builtin": ("name", "MISSING_ADAPTER_NAME", "Built-in adapter requires name"),
    "package": ("package", "MISSING_PACKAGE_NAME", "Package adapter requires package name"),
    "local": ("path", "MISSING_ADAPTER_PATH", "Local adapter requires path"),
}


def parse_adapter_config(data: Any) -> AdapterConfig:
    """
    Coerce a mapping (or an existing config) into an AdapterConfig.

    Raises:
        AdapterConfigurationError: UNKNOWN_ADAPTER_TYPE, MISSING_* for an
            absent locator, or INVALID_ADAPTER_CONFIG for anything else
    """
    if isinstance(data, _AdapterConfigBase):
        return data
    if not isinstance(data, Mapping):
        raise AdapterConfigurationError(
            f"Adapter config must be a mapping, got {type(data).__name__}",
            "INVALID_ADAPTER_CONFIG",
        )

    adapter_type = data.get("type")
    if adapter_type not in _REQUIRED_LOCATORS:
        raise AdapterConfigurationError(
            f"Unknown adapter type: {adapter_type}",
            "UNKNOWN_ADAPTER_TYPE",
            {"type": adapter_type},
        )

    field_name, code, message = _REQUIRED_LOCATORS[adapter_type]
    if not data.get(field_name):
        raise AdapterConfigurationError(message, code)

    try:
        return _adapter_config_type.validate_python(dict(data))
    except PydanticValidationError as e:
        raise AdapterConfigurationError(
            f"Invalid adapter config: {e.errors()[0]['msg']}",
            "INVALID_ADAPTER_CONFIG",
            {"errors": [err["msg"] for err in e.errors()]},
        ) from e


def canonical_options(options: Mapping[str, Any]) -> str:
    return json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)


def cache_key(config: AdapterConfig) -> str:
    """
    Deterministic cache key for a config.

    Same variant + same locator + same option set (in any key order) give
    the same key; any difference in locator or options gives another.
    """
    key = f"{config.type}:{config.locator}"
    if config.options:
        key += f"#{canonical_options(config.options)}"
    return key


__all__ = [
    "DEFAULT_EXPORT_NAME",
    "AdapterConfig",
    "BuiltinAdapterConfig",
    "LocalAdapterConfig",
    "PackageAdapterConfig",
    "cache_key",
    "canonical_options",
    "parse_adapter_config",
]
