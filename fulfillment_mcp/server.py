"""
MCP Protocol Server.

JSON-RPC 2.0 dispatcher for the tool-server protocol surface:

    initialize                 -> serverInfo + capabilities (tools only)
    tools/list                 -> every registered tool
    tools/call                 -> ToolRegistry.execute(name, arguments)
    ping                       -> {}
    prompts/list, resources/list -> empty lists
    notifications/*            -> no response

Protocol errors become JSON-RPC error objects; tool-execution failures
arrive already rendered as results with ``isError: true``.

The dispatcher is transport-agnostic. StdioTransport drives it over
newline-delimited JSON on stdin/stdout; the HTTP app drives it from a
request handler.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, TextIO

from .errors import ErrorCode, InvalidParamsError, MethodNotFoundError, ProtocolError

if TYPE_CHECKING:
    from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"

# Largest stdio message accepted, in bytes
STDIO_LINE_LIMIT = 16 * 1024 * 1024


def jsonrpc_result(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def jsonrpc_error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


class FulfillmentMCPServer:
    """
    Dispatches JSON-RPC messages to protocol handlers.

    Example:
        server = FulfillmentMCPServer(registry, name="fulfillment-mcp", version="1.0.0")
        response = await server.handle_message(
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}
        )
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        name: str = "fulfillment-mcp",
        version: str = "1.0.0",
        instructions: str | None = None,
    ) -> None:
        self._registry = registry
        self._name = name
        self._version = version
        self._instructions = instructions
        self._client_info: dict[str, Any] | None = None
        self._handlers = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "prompts/list": self._handle_prompts_list,
            "resources/list": self._handle_resources_list,
        }

    @property
    def client_info(self) -> dict[str, Any] | None:
        """clientInfo from the last initialize request."""
        return self._client_info

    # ==================== Entry points ====================

    async def handle_raw(self, raw: str | bytes) -> dict[str, Any] | None:
        """Parse and dispatch one serialized message."""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[mcp_server] Parse error: {e}")
            return jsonrpc_error(None, ErrorCode.PARSE_ERROR, f"Parse error: {e}")
        return await self.handle_message(message)

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """
        Dispatch one decoded message.

        Returns:
            The response object, or None for notifications
        """
        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            request_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error(request_id, ErrorCode.INVALID_REQUEST, "Invalid Request")

        method = message.get("method")
        if not isinstance(method, str):
            return jsonrpc_error(message.get("id"), ErrorCode.INVALID_REQUEST, "Invalid Request")

        is_notification = "id" not in message
        request_id = message.get("id")

        if is_notification:
            # Nothing is sent back for notifications, including notifications/initialized
            logger.debug(f"[mcp_server] Notification: {method}")
            return None

        params = message.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return jsonrpc_error(request_id, ErrorCode.INVALID_PARAMS, "params must be an object")

        handler = self._handlers.get(method)
        try:
            if handler is None:
                raise MethodNotFoundError(method)
            result = await handler(params)
        except ProtocolError as e:
            logger.info(f"[mcp_server] {method} rejected: {e.message}")
            return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": e.to_jsonrpc()}
        except Exception as e:
            logger.error(f"[mcp_server] {method} failed: {e}", exc_info=True)
            return jsonrpc_error(request_id, ErrorCode.INTERNAL_ERROR, f"Internal error: {e}")

        return jsonrpc_result(request_id, result)

    # ==================== Handlers ====================

    async def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        self._client_info = params.get("clientInfo")
        requested = params.get("protocolVersion")
        logger.info(
            f"[mcp_server] initialize from {self._client_info or 'unknown client'} "
            f"(protocol {requested or 'unspecified'})"
        )

        result: dict[str, Any] = {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": self._name, "version": self._version},
            "capabilities": {"tools": {}},
        }
        if self._instructions:
            result["instructions"] = self._instructions
        return result

    async def _handle_ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _handle_tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self._registry.to_mcp_schemas()}

    async def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidParamsError("tools/call requires a tool name", {"params": sorted(params)})

        arguments = params.get("arguments")
        logger.debug(f"[mcp_server] tools/call {name}")
        result = await self._registry.execute(name, arguments)
        return result.to_dict()

    async def _handle_prompts_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": []}

    async def _handle_resources_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": []}

    def __repr__(self) -> str:
        return f"<FulfillmentMCPServer name={self._name!r} tools={len(self._registry)}>"


# =============================================================================
# Stdio Transport
# =============================================================================


class StdioTransport:
    """
    Newline-delimited JSON-RPC over stdin/stdout.

    Each incoming line is dispatched as its own task, so a slow tools/call
    does not hold up ping or tools/list. Responses are written as they
    complete, one per line.

    A line longer than ``line_limit`` bytes is discarded and answered with
    an invalid-request error; the transport keeps serving.
    """

    def __init__(
        self,
        server: FulfillmentMCPServer,
        *,
        reader: asyncio.StreamReader | None = None,
        output: TextIO | None = None,
        line_limit: int = STDIO_LINE_LIMIT,
    ) -> None:
        self._server = server
        self._reader = reader
        self._output = output or sys.stdout
        self._line_limit = line_limit
        self._pending: set[asyncio.Task[None]] = set()
        self._write_lock = asyncio.Lock()

    async def _open_stdin(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=self._line_limit)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)
        return reader

    async def serve(self) -> None:
        """Read until EOF, then wait for in-flight messages to finish."""
        reader = self._reader or await self._open_stdin()
        logger.info("[stdio] Serving on stdin/stdout")

        while True:
            try:
                line = await self._read_line(reader)
            except asyncio.LimitOverrunError:
                logger.warning("[stdio] Discarded a message over the line limit")
                await self._write(
                    jsonrpc_error(None, ErrorCode.INVALID_REQUEST, "Invalid request: message exceeds the line limit")
                )
                continue
            if not line:
                break
            if not line.strip():
                continue
            task = asyncio.create_task(self._process(line))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        logger.info("[stdio] Input closed")

    async def _read_line(self, reader: asyncio.StreamReader) -> bytes:
        """
        Next line, or b"" at EOF.

        Raises:
            asyncio.LimitOverrunError: After the overlong line was drained
        """
        try:
            return await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            return e.partial
        except asyncio.LimitOverrunError as e:
            await self._drain_line(reader, e.consumed)
            raise

    @staticmethod
    async def _drain_line(reader: asyncio.StreamReader, consumed: int) -> None:
        """Discard buffered bytes up to and including the next newline."""
        while True:
            await reader.readexactly(consumed)
            try:
                await reader.readuntil(b"\n")
                return
            except asyncio.IncompleteReadError:
                return
            except asyncio.LimitOverrunError as e:
                consumed = e.consumed

    async def _process(self, line: bytes) -> None:
        response = await self._server.handle_raw(line)
        if response is None:
            return
        await self._write(response)

    async def _write(self, response: dict[str, Any]) -> None:
        payload = json.dumps(response, default=str)
        async with self._write_lock:
            self._output.write(payload + "\n")
            self._output.flush()


__all__ = [
    "PROTOCOL_VERSION",
    "STDIO_LINE_LIMIT",
    "FulfillmentMCPServer",
    "StdioTransport",
    "jsonrpc_error",
    "jsonrpc_result",
]
