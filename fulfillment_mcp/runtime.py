"""
Runtime context.

One explicitly constructed object holds everything with process lifetime:
settings, logger, adapter factory (and its instance cache), adapter
manager, health monitor, orchestrator and tool registry. Nothing lives in
module-level mutable state, so each test (or each HTTP app) builds its own.

Usage:
    runtime = build_runtime(load_settings())
    await runtime.start()
    result = await runtime.tools.execute("get-orders", {})
    await runtime.shutdown()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .adapters import create_adapter_factory
from .health import HealthMonitor
from .manager import AdapterManager
from .orchestrator import ServiceOrchestrator
from .resilience.circuit_breaker import CircuitBreaker
from .resilience.classifier import ErrorClassifier
from .resilience.retry import NO_RETRY, RetryPolicy
from .resilience.timeout import TimeoutConfig, TimeoutHandler
from .server import FulfillmentMCPServer
from .tools import ToolRegistry, register_all_tools
from .validation import Validator

if TYPE_CHECKING:
    from .adapters.factory import AdapterFactory
    from .config import AppSettings

logger = logging.getLogger(__name__)


@dataclass
class RuntimeContext:
    settings: AppSettings
    factory: AdapterFactory
    manager: AdapterManager
    orchestrator: ServiceOrchestrator
    tools: ToolRegistry
    server: FulfillmentMCPServer
    monitor: HealthMonitor
    timeouts: TimeoutHandler
    classifier: ErrorClassifier
    validator: Validator
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("fulfillment_mcp"))

    async def start(self) -> None:
        """Initialize the configured adapter."""
        self.logger.info(
            f"[runtime] Starting {self.settings.server.name} {self.settings.server.version} "
            f"({self.settings.server.environment})"
        )
        await self.orchestrator.initialize(self.settings.adapter)

    async def shutdown(self) -> None:
        """Release the current adapter and every cached one. Never raises."""
        await self.orchestrator.cleanup()
        failures = await self.factory.clear_instances()
        if failures:
            self.logger.warning(f"[runtime] {len(failures)} adapter(s) failed to disconnect on shutdown")
        self.logger.info("[runtime] Shut down")


def build_retry_policy(settings: AppSettings, classifier: ErrorClassifier) -> RetryPolicy:
    retry = settings.retry
    if not retry.enabled:
        return NO_RETRY
    return RetryPolicy.exponential(
        max_attempts=retry.max_attempts,
        initial_delay=retry.initial_delay_ms / 1000,
        backoff_multiplier=retry.backoff_multiplier,
        max_delay=retry.max_delay_ms / 1000,
        classifier=classifier,
    )


def build_circuit_breaker(settings: AppSettings, classifier: ErrorClassifier) -> CircuitBreaker | None:
    breaker = settings.circuit_breaker
    if not breaker.enabled:
        return None
    reset_timeout = breaker.reset_timeout_ms / 1000
    return CircuitBreaker(
        name="adapter",
        failure_threshold=breaker.failure_threshold,
        reset_timeout=reset_timeout,
        window=max(reset_timeout, 60.0),
        classifier=classifier,
    )


def build_runtime(settings: AppSettings, factory: AdapterFactory | None = None) -> RuntimeContext:
    """
    Assemble the runtime from settings.

    Raises:
        ConfigurationError: If the settings are inconsistent
    """
    classifier = ErrorClassifier()
    validator = Validator()
    monitor = HealthMonitor()
    timeouts = TimeoutHandler(
        TimeoutConfig(request_ms=settings.timeouts.request_ms, adapter_ms=settings.timeouts.adapter_ms)
    )
    factory = factory or create_adapter_factory()

    monitoring = settings.monitoring
    manager = AdapterManager(
        factory,
        health_check_interval=monitoring.health_check_interval_ms / 1000 if monitoring.enabled else None,
        monitor=monitor,
        timeouts=timeouts,
    )
    orchestrator = ServiceOrchestrator(
        manager,
        timeouts=timeouts,
        retry_policy=build_retry_policy(settings, classifier),
        circuit_breaker=build_circuit_breaker(settings, classifier),
        monitor=monitor,
        classifier=classifier,
    )

    tools = ToolRegistry(validator=validator, classifier=classifier, timeouts=timeouts)
    register_all_tools(tools, orchestrator)
    server = FulfillmentMCPServer(
        tools,
        name=settings.server.name,
        version=settings.server.version,
        instructions=settings.server.description,
    )

    logger.info(f"[runtime] Built runtime with {len(tools)} tools, adapter={settings.adapter.type}")
    return RuntimeContext(
        settings=settings,
        factory=factory,
        manager=manager,
        orchestrator=orchestrator,
        tools=tools,
        server=server,
        monitor=monitor,
        timeouts=timeouts,
        classifier=classifier,
        validator=validator,
    )


__all__ = [
    "RuntimeContext",
    "build_circuit_breaker",
    "build_retry_policy",
    "build_runtime",
]
