"""
MCP session — connect, initialize, discover tools, disconnect.

Usage:
    session = McpSession("https://tools.example.com/sse")

    # Open the stream and wait for the server's endpoint frame
    await session.connect()

    # initialize + tools/list
    await session.initialize()

    # Raw JSON-RPC
    response = await session.request("tools/call", {"name": "GetWeather", "arguments": {"city": "Reno"}})

    # Tear down the background reader
    await session.disconnect()

or, equivalently:

    async with McpSession(url) as session:
        ...
"""

from __future__ import annotations

import enum
import logging
from typing import Any

import httpx

from mcp_chat import __version__
from mcp_chat.errors import ProtocolError, SessionNotReadyError, TransportError
from mcp_chat.schema import Tool, parse_tools
from mcp_chat.transport import (
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    JsonRpcResponse,
    SseTransport,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "mcp-chat"


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_ENDPOINT = "awaiting_endpoint"
    READY_PRE_SESSION = "ready_pre_session"
    INITIALIZING = "initializing"
    READY = "ready"
    DISCONNECTING = "disconnecting"


_REQUEST_STATES = {
    SessionState.READY_PRE_SESSION,
    SessionState.INITIALIZING,
    SessionState.READY,
}


class McpSession:
    """
    One client session against one MCP SSE server.

    Responsibilities:
    - Run the connect handshake (via SseTransport)
    - Initialize the protocol session and snapshot the tool list
    - Route raw requests to the transport
    - Graceful shutdown

    There is no reconnection. After a terminal failure build a new session.
    """

    def __init__(
        self,
        sse_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.sse_url = sse_url
        self._transport = SseTransport(
            sse_url,
            http_client=http_client,
            handshake_timeout=handshake_timeout,
            request_timeout=request_timeout,
        )
        self._state = SessionState.DISCONNECTED
        self._tools: tuple[Tool, ...] = ()
        self._server_info: dict[str, Any] = {}
        self._session_id: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def message_endpoint(self) -> str | None:
        return self._transport.message_endpoint

    @property
    def tools(self) -> tuple[Tool, ...]:
        return self._tools

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    @property
    def server_info(self) -> dict[str, Any]:
        return self._server_info

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def transport(self) -> SseTransport:
        return self._transport

    def get_tool(self, name: str) -> Tool | None:
        return next((t for t in self._tools if t.name == name), None)

    def _set_state(self, state: SessionState) -> None:
        logger.debug(f"Session state: {self._state.value} -> {state.value}")
        self._state = state

    async def connect(self) -> None:
        """
        Open the SSE stream and wait for the endpoint frame.

        Raises:
            HandshakeTimeout: no endpoint frame in time.
            TransportError: the stream request failed or closed early.
        """
        if self._state is not SessionState.DISCONNECTED:
            raise TransportError(f"Cannot connect from state {self._state.value}", url=self.sse_url)

        self._set_state(SessionState.CONNECTING)
        try:
            self._set_state(SessionState.AWAITING_ENDPOINT)
            await self._transport.start()
        except Exception:
            self._set_state(SessionState.DISCONNECTED)
            raise
        self._set_state(SessionState.READY_PRE_SESSION)

    async def initialize(self) -> int:
        """
        Run initialize and tools/list. Returns the number of tools found.

        Failures are logged, not raised: the session stays usable with zero
        tools, which callers treat as "data unavailable".
        """
        if self._state not in _REQUEST_STATES:
            logger.error(f"Cannot initialize from state {self._state.value}")
            return 0

        self._set_state(SessionState.INITIALIZING)
        try:
            init = await self.request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": __version__},
            })
            if init.is_error:
                raise ProtocolError(f"initialize rejected: {init.error}", init.error)
            if isinstance(init.result, dict):
                self._server_info = init.result.get("serverInfo") or {}
                session_id = init.result.get("sessionId")
                if session_id:
                    self._session_id = str(session_id)
                    logger.info(f"Session ID: {self._session_id}")
            logger.info("MCP session initialized.")

            listing = await self.request("tools/list", {})
            if listing.is_error or not isinstance(listing.result, dict):
                raise ProtocolError("tools/list returned no result", listing.error or listing.result)
            raw_tools = listing.result.get("tools")
            self._tools = tuple(parse_tools(raw_tools))
            self._log_tools()
        except Exception as e:
            logger.error(f"Initialization error: {e}", exc_info=True)
            self._tools = ()
        finally:
            self._set_state(SessionState.READY)

        return self.tool_count

    def _log_tools(self) -> None:
        logger.info(f"Found {self.tool_count} tools:")
        for tool in self._tools[:10]:
            logger.info(f"  - {tool.name}: {tool.description}")
        if self.tool_count > 10:
            logger.info(f"  ... and {self.tool_count - 10} more tools")

    async def request(self, method: str, params: dict[str, Any] | None = None) -> JsonRpcResponse:
        """Send one JSON-RPC request and return its correlated response."""
        if self._state not in _REQUEST_STATES:
            raise SessionNotReadyError(
                f"Session is {self._state.value}, cannot send {method}", url=self.sse_url
            )
        return await self._transport.send(method, params or {})

    async def disconnect(self) -> None:
        """Stop the background reader and release the HTTP client."""
        if self._state is SessionState.DISCONNECTED:
            return
        self._set_state(SessionState.DISCONNECTING)
        try:
            await self._transport.stop()
        finally:
            self._set_state(SessionState.DISCONNECTED)
            logger.info("Disconnected from MCP server")

    def is_connected(self) -> bool:
        return self._state in _REQUEST_STATES and self._transport.is_alive()

    async def __aenter__(self) -> "McpSession":
        await self.connect()
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()
