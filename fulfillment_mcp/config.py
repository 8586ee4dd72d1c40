"""
Configuration for fulfillment-mcp.

Pydantic models for everything the server reads at startup. Sources, in
increasing precedence:

1. Model defaults
2. A JSON or YAML file: ``FULFILLMENT_MCP_CONFIG``, else the first of
   ``config.json``, ``config/{environment}.json``, ``config/{environment}.yaml``
3. ``FULFILLMENT_MCP_*`` environment variables

Every violation (including an adapter timeout that is not strictly less
than the request timeout) fails at startup with ConfigurationError.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .adapters.config import AdapterConfig, BuiltinAdapterConfig
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FULFILLMENT_MCP_"
CONFIG_PATH_ENV = f"{ENV_PREFIX}CONFIG"


class ServerSettings(BaseModel):
    name: str = Field("fulfillment-mcp", description="Server name reported by initialize")
    version: str = Field("1.0.0", description="Server version reported by initialize")
    description: str = Field("Order, inventory and customer operations over MCP")
    environment: Literal["development", "staging", "production"] = "development"

    class Config:
        extra = "forbid"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    class Config:
        extra = "forbid"


class TimeoutSettings(BaseModel):
    """Timeout budgets in milliseconds; ``adapter_ms`` must be below ``request_ms``."""

    request_ms: int = Field(30000, gt=0, description="Whole tools/call budget")
    adapter_ms: int = Field(25000, gt=0, description="Single adapter call budget")

    class Config:
        extra = "forbid"

    @model_validator(mode="after")
    def _adapter_below_request(self) -> TimeoutSettings:
        if self.adapter_ms >= self.request_ms:
            raise ValueError(
                f"adapter timeout ({self.adapter_ms}ms) must be less than "
                f"request timeout ({self.request_ms}ms)"
            )
        return self


class RetrySettings(BaseModel):
    enabled: bool = True
    max_attempts: int = Field(3, gt=0)
    initial_delay_ms: int = Field(1000, ge=0)
    backoff_multiplier: float = Field(2.0, ge=1)
    max_delay_ms: int = Field(10000, ge=0)

    class Config:
        extra = "forbid"


class CircuitBreakerSettings(BaseModel):
    enabled: bool = True
    failure_threshold: int = Field(5, gt=0)
    reset_timeout_ms: int = Field(60000, ge=1000)

    class Config:
        extra = "forbid"


class MonitoringSettings(BaseModel):
    enabled: bool = True
    health_check_interval_ms: int = Field(60000, ge=1000)

    class Config:
        extra = "forbid"


class AppSettings(BaseModel):
    """All startup configuration."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    adapter: AdapterConfig = Field(default_factory=lambda: BuiltinAdapterConfig(name="mock"))
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    class Config:
        extra = "forbid"


# =============================================================================
# Loading
# =============================================================================


def read_config_file(path: str | Path) -> dict[str, Any]:
    """
    Read a JSON or YAML config file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}", {"path": str(path)})

    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain an object", {"path": str(path)})
    logger.info(f"[config] Loaded config file: {path}")
    return data


def find_config_file(environ: Mapping[str, str], base_dir: Path) -> Path | None:
    explicit = environ.get(CONFIG_PATH_ENV)
    if explicit:
        return Path(explicit)

    environment = environ.get(f"{ENV_PREFIX}ENVIRONMENT", "development")
    for candidate in (
        base_dir / "config.json",
        base_dir / "config" / f"{environment}.json",
        base_dir / "config" / f"{environment}.yaml",
    ):
        if candidate.is_file():
            return candidate
    return None


def _set(data: dict[str, Any], section: str, key: str, value: Any) -> None:
    data.setdefault(section, {})
    if not isinstance(data[section], dict):
        data[section] = {}
    data[section][key] = value


def _int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay ``FULFILLMENT_MCP_*`` variables onto raw config data."""
    data = {key: (dict(value) if isinstance(value, dict) else value) for key, value in data.items()}

    def env(name: str) -> str | None:
        return environ.get(f"{ENV_PREFIX}{name}")

    if env("ENVIRONMENT"):
        _set(data, "server", "environment", env("ENVIRONMENT"))
    if env("LOG_LEVEL"):
        _set(data, "logging", "level", env("LOG_LEVEL").upper())

    adapter_type = env("ADAPTER_TYPE")
    if adapter_type:
        # Switching type replaces the adapter section; options do not carry over
        current = data.get("adapter") if isinstance(data.get("adapter"), dict) else {}
        if current.get("type") != adapter_type:
            data["adapter"] = {"type": adapter_type}
        else:
            data["adapter"] = dict(current)
    for name, key in (("ADAPTER_NAME", "name"), ("ADAPTER_PACKAGE", "package"), ("ADAPTER_PATH", "path")):
        if env(name):
            _set(data, "adapter", key, env(name))
    if env("ADAPTER_EXPORT"):
        _set(data, "adapter", "export_name", env("ADAPTER_EXPORT"))

    if env("REQUEST_TIMEOUT_MS"):
        _set(data, "timeouts", "request_ms", _int("REQUEST_TIMEOUT_MS", env("REQUEST_TIMEOUT_MS")))
    if env("ADAPTER_TIMEOUT_MS"):
        _set(data, "timeouts", "adapter_ms", _int("ADAPTER_TIMEOUT_MS", env("ADAPTER_TIMEOUT_MS")))

    return data


def build_settings(data: Mapping[str, Any]) -> AppSettings:
    """
    Validate raw config data.

    Raises:
        ConfigurationError: With every pydantic error message in details
    """
    try:
        return AppSettings.model_validate(dict(data))
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError(f"Invalid configuration: {errors[0]}", {"errors": errors}) from e


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    base_dir: str | Path | None = None,
) -> AppSettings:
    """
    Load settings from file and environment.

    Args:
        path: Explicit config file (skips discovery)
        environ: Environment mapping (defaults to os.environ)
        base_dir: Directory searched for config files (defaults to cwd)
    """
    environ = os.environ if environ is None else environ
    base = Path(base_dir) if base_dir is not None else Path.cwd()

    config_path = Path(path) if path is not None else find_config_file(environ, base)
    data = read_config_file(config_path) if config_path is not None else {}
    return build_settings(apply_env_overrides(data, environ))


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings.

    Uses lru_cache for singleton pattern; call ``get_settings.cache_clear()``
    in tests.
    """
    return load_settings()


__all__ = [
    "AppSettings",
    "CircuitBreakerSettings",
    "LoggingSettings",
    "MonitoringSettings",
    "RetrySettings",
    "ServerSettings",
    "TimeoutSettings",
    "apply_env_overrides",
    "build_settings",
    "find_config_file",
    "get_settings",
    "load_settings",
    "read_config_file",
]
