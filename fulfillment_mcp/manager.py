"""
Adapter Manager.

Owns the lifecycle of the single adapter serving live traffic:

    UNINITIALIZED ──initialize()──> INITIALIZING ──ok──> READY
          ^                              │                 │
          └──────────failure─────────────┘                 │
          ^                                                │
          └──────── cleanup() <── CLEANING_UP <────────────┘

Guarantees:
- Single-flight: concurrent initialize() calls with the same config share
  one in-flight attempt (one construction, one connect, one outcome). A
  call with a different config waits for the in-flight attempt to settle
  and then runs its own.
- No partially-ready state is observable: any failure while initializing
  resets to UNINITIALIZED and propagates.
- Exactly one periodic health-check task runs while READY. It checks once
  immediately and then every ``health_check_interval`` seconds, independent
  of request traffic. cleanup() cancels it.
- cleanup() is idempotent and never raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from .adapters.base import ORDER_OPERATIONS, QUERY_OPERATIONS
from .adapters.config import cache_key, parse_adapter_config
from .errors import AdapterNotInitializedError
from .health import HealthReport

if TYPE_CHECKING:
    from .adapters.base import FulfillmentAdapter
    from .adapters.config import AdapterConfig
    from .adapters.factory import AdapterFactory
    from .health import HealthMonitor
    from .resilience.timeout import TimeoutHandler

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_CHECK_INTERVAL = 60.0
HEALTH_COMPONENT = "adapter"


class AdapterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLEANING_UP = "cleaning_up"


class AdapterManager:
    """
    Lifecycle owner of the current adapter.

    The factory keeps every adapter it has built; the manager holds the one
    "current" reference used for requests.

    Example:
        manager = AdapterManager(factory, health_check_interval=60)
        await manager.initialize({"type": "builtin", "name": "mock"})
        adapter = manager.get_adapter()
        ...
        await manager.cleanup()
    """

    def __init__(
        self,
        factory: AdapterFactory,
        *,
        health_check_interval: float | None = DEFAULT_HEALTH_CHECK_INTERVAL,
        monitor: HealthMonitor | None = None,
        timeouts: TimeoutHandler | None = None,
    ):
        """
        Args:
            factory: Adapter factory (owns the instance cache)
            health_check_interval: Seconds between health checks; None disables them
            monitor: Receives every health report
            timeouts: Bounds adapter health checks by the adapter budget
        """
        self._factory = factory
        self._health_check_interval = health_check_interval
        self._monitor = monitor
        self._timeouts = timeouts

        self._state = AdapterState.UNINITIALIZED
        self._adapter: FulfillmentAdapter | None = None
        self._config: AdapterConfig | None = None

        self._init_task: asyncio.Future | None = None
        self._init_key: str | None = None
        self._cleanup_task: asyncio.Future | None = None

        self._health_task: asyncio.Task | None = None
        self._last_health: HealthReport | None = None
        self._last_health_check_at: datetime | None = None

    # ==================== State ====================

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == AdapterState.READY and self._adapter is not None

    @property
    def config(self) -> AdapterConfig | None:
        return self._config

    @property
    def last_health_status(self) -> HealthReport | None:
        return self._last_health

    @property
    def last_health_check_at(self) -> datetime | None:
        return self._last_health_check_at

    @property
    def health_monitoring_active(self) -> bool:
        return self._health_task is not None and not self._health_task.done()

    def get_adapter(self) -> FulfillmentAdapter:
        """
        Get the current adapter.

        Raises:
            AdapterNotInitializedError: If the manager is not READY
        """
        if not self.is_ready:
            raise AdapterNotInitializedError()
        return self._adapter

    # ==================== Initialization ====================

    async def initialize(self, config: AdapterConfig | dict[str, Any]) -> FulfillmentAdapter:
        """
        Construct, initialize and connect the adapter for ``config``.

        Any previously ready adapter is cleaned up first.

        Raises:
            AdapterConfigurationError: If the adapter cannot be built
            Exception: Whatever the adapter's initialize/connect raised
        """
        config = parse_adapter_config(config)
        key = cache_key(config)

        while self._init_task is not None:
            task = self._init_task
            if self._init_key == key:
                logger.debug(f"[adapter_manager] Joining in-flight initialization: {key}")
                return await asyncio.shield(task)

            logger.info(f"[adapter_manager] Waiting for in-flight initialization before {key}")
            try:
                await asyncio.shield(task)
            except Exception as e:
                logger.info(f"[adapter_manager] In-flight initialization failed ({e}), starting {key}")

        self._init_key = key
        self._init_task = asyncio.ensure_future(self._initialize(config, key))
        return await asyncio.shield(self._init_task)

    async def _initialize(self, config: AdapterConfig, key: str) -> FulfillmentAdapter:
        try:
            if self._cleanup_task is not None:
                await asyncio.shield(self._cleanup_task)
            if self._adapter is not None or self._health_task is not None:
                await self._teardown()

            self._state = AdapterState.INITIALIZING
            logger.info(f"[adapter_manager] Initializing adapter: {key}")

            try:
                adapter = await self._factory.create_adapter(config)

                hook = getattr(adapter, "initialize", None)
                if callable(hook):
                    await hook(dict(config.options))

                await adapter.connect()
            except Exception as e:
                self._state = AdapterState.UNINITIALIZED
                self._adapter = None
                self._config = None
                logger.error(f"[adapter_manager] Initialization failed for {key}: {e}")
                raise

            self._adapter = adapter
            self._config = config
            self._state = AdapterState.READY
            logger.info(f"[adapter_manager] Adapter ready: {key}")

            self._start_health_monitoring()
            return adapter
        finally:
            self._init_task = None
            self._init_key = None

    # ==================== Health ====================

    def _start_health_monitoring(self) -> None:
        if self._health_check_interval is None:
            return
        if self._health_task is not None:
            self._health_task.cancel()
        self._health_task = asyncio.create_task(self._health_loop(self._health_check_interval))
        logger.info(
            f"[adapter_manager] Health monitoring started (interval={self._health_check_interval}s)"
        )

    async def _stop_health_monitoring(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[adapter_manager] Health monitoring stopped")

    async def _health_loop(self, interval: float) -> None:
        while True:
            await self.check_health()
            await asyncio.sleep(interval)

    async def check_health(self) -> HealthReport:
        """
        Run one health check and cache the result.

        Never raises: a failing or hanging check yields an unhealthy report.
        """
        adapter = self._adapter
        if adapter is None:
            report = HealthReport.unhealthy("Adapter not initialized", state=self._state.value)
        else:
            try:
                if self._timeouts is not None:
                    result = await self._timeouts.with_timeout(adapter.health_check, "adapter")
                else:
                    result = await adapter.health_check()
                report = HealthReport.from_dict(result) if isinstance(result, Mapping) else result
            except Exception as e:
                logger.warning(f"[adapter_manager] Health check failed: {e}")
                report = HealthReport.unhealthy(f"Health check failed: {e}", error=type(e).__name__)

        self._last_health = report
        self._last_health_check_at = datetime.now(timezone.utc)
        if self._monitor is not None:
            self._monitor.record_health_check(HEALTH_COMPONENT, report)
        return report

    # ==================== Configuration ====================

    async def get_capabilities(self) -> dict[str, Any]:
        adapter = self.get_adapter()
        hook = getattr(adapter, "get_capabilities", None)
        if callable(hook):
            return await hook()
        return {"operations": list(ORDER_OPERATIONS + QUERY_OPERATIONS)}

    async def update_config(self, config: AdapterConfig | dict[str, Any]) -> FulfillmentAdapter:
        """
        Apply a new adapter config.

        Options-only changes go through the adapter's ``update_config`` hook
        when it has one; anything else reinitializes.
        """
        config = parse_adapter_config(config)
        current = self._config
        adapter = self._adapter
        hook = getattr(adapter, "update_config", None)

        if (
            self.is_ready
            and current is not None
            and current.type == config.type
            and current.locator == config.locator
            and callable(hook)
        ):
            await hook(dict(config.options))
            self._config = config
            logger.info(f"[adapter_manager] Adapter options updated in place: {cache_key(config)}")
            return adapter

        return await self.initialize(config)

    def get_info(self) -> dict[str, Any]:
        config = self._config
        health = self._last_health
        return {
            "state": self._state.value,
            "adapter": type(self._adapter).__name__ if self._adapter is not None else None,
            "config": {"type": config.type, "locator": config.locator} if config else None,
            "cacheKey": cache_key(config) if config else None,
            "lastHealthStatus": health.status.value if health else None,
            "lastHealthCheckAt": (
                self._last_health_check_at.isoformat() if self._last_health_check_at else None
            ),
            "healthCheckInterval": self._health_check_interval,
            "healthMonitoring": self.health_monitoring_active,
        }

    # ==================== Cleanup ====================

    async def cleanup(self) -> None:
        """Stop health checks and release the adapter. Safe to call repeatedly."""
        task = self._init_task
        if task is not None:
            try:
                await asyncio.shield(task)
            except Exception as e:
                logger.warning(f"[adapter_manager] Pending initialization failed during cleanup: {e}")

        if self._cleanup_task is not None:
            logger.debug("[adapter_manager] Joining in-flight cleanup")
            await asyncio.shield(self._cleanup_task)
            return

        if self._adapter is None and self._health_task is None and self._state == AdapterState.UNINITIALIZED:
            return

        self._cleanup_task = asyncio.ensure_future(self._teardown())
        try:
            await asyncio.shield(self._cleanup_task)
        finally:
            self._cleanup_task = None

    async def _teardown(self) -> None:
        self._state = AdapterState.CLEANING_UP
        await self._stop_health_monitoring()

        adapter = self._adapter
        if adapter is not None:
            hook = getattr(adapter, "cleanup", None)
            if callable(hook):
                try:
                    await hook()
                except Exception as e:
                    logger.warning(f"[adapter_manager] Adapter cleanup hook failed: {e}")
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.warning(f"[adapter_manager] Adapter disconnect failed: {e}")

        self._adapter = None
        self._config = None
        self._last_health = None
        self._last_health_check_at = None
        self._state = AdapterState.UNINITIALIZED
        logger.info("[adapter_manager] Cleaned up")

    def __repr__(self) -> str:
        return f"<AdapterManager state={self._state.value}>"


__all__ = [
    "DEFAULT_HEALTH_CHECK_INTERVAL",
    "HEALTH_COMPONENT",
    "AdapterManager",
    "AdapterState",
]
