"""
Stdio entry point.

    python -m fulfillment_mcp

Logs go to stderr; stdout carries the protocol stream.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from .config import load_settings
from .errors import FulfillmentError
from .runtime import build_runtime
from .server import StdioTransport

logger = logging.getLogger("fulfillment_mcp")


async def serve() -> None:
    settings = load_settings()
    logging.getLogger().setLevel(settings.logging.level)

    runtime = build_runtime(settings)
    await runtime.start()
    try:
        await StdioTransport(runtime.server).serve()
    finally:
        await runtime.shutdown()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    try:
        asyncio.run(serve())
    except FulfillmentError as e:
        logger.error(f"Failed to start: {e.message} {e.details or ''}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
