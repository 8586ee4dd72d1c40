"""
fulfillment-mcp HTTP application.

FastAPI entry point. The lifespan builds the runtime context, initializes
the configured adapter and tears everything down on shutdown.

    POST /mcp      one JSON-RPC message in, one response out
    GET  /health   adapter and system health
    GET  /metrics  per-operation counters and latency percentiles
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from fulfillment_mcp import __version__
from fulfillment_mcp.config import get_settings
from fulfillment_mcp.runtime import RuntimeContext, build_runtime

if TYPE_CHECKING:
    from fulfillment_mcp.config import AppSettings

logger = logging.getLogger(__name__)


def get_runtime(request: Request) -> RuntimeContext:
    return request.app.state.runtime


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to run with (defaults to get_settings() at startup)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        logging.getLogger().setLevel(resolved.logging.level)

        logger.info("Starting fulfillment-mcp services...")
        runtime = build_runtime(resolved)
        try:
            await runtime.start()
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}", exc_info=True)
            await runtime.shutdown()
            raise
        app.state.runtime = runtime
        logger.info("fulfillment-mcp services initialized successfully")

        yield

        logger.info("Shutting down fulfillment-mcp services...")
        await runtime.shutdown()
        logger.info("fulfillment-mcp services shut down successfully")

    app = FastAPI(
        title="fulfillment-mcp",
        description="Order, inventory and customer operations over MCP",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/", tags=["root"])
    async def root() -> dict[str, str]:
        """Root endpoint with service info."""
        return {
            "service": "fulfillment-mcp",
            "version": __version__,
            "status": "running",
        }

    @app.post("/mcp", tags=["mcp"])
    async def mcp_endpoint(request: Request) -> Response:
        runtime = get_runtime(request)
        response = await runtime.server.handle_raw(await request.body())
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response)

    @app.get("/health", tags=["health"])
    async def health_check(request: Request) -> dict[str, Any]:
        """
        Health check endpoint.

        Returns adapter health, aggregated system health, manager state and
        circuit breaker stats.
        """
        return await get_runtime(request).orchestrator.check_health()

    @app.get("/metrics", tags=["health"])
    async def metrics(request: Request) -> dict[str, Any]:
        return get_runtime(request).orchestrator.get_metrics()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "fulfillment_mcp.app.main:app",
        host="0.0.0.0",
        port=8000,
    )
