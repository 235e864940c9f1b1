"""
Exceptions raised by the MCP chat client.

Only connect() and request() let these escape to callers. The tool proxy,
the answer strategies and the agent convert them into plain strings.
"""

from __future__ import annotations

from typing import Any, Optional


class McpChatError(RuntimeError):
    """Base class for client errors."""


class HandshakeTimeout(McpChatError, TimeoutError):
    """No endpoint frame arrived on the SSE stream in time."""


class RequestTimeout(McpChatError, TimeoutError):
    """No correlated reply arrived on the SSE stream in time."""

    def __init__(self, method: str, request_id: str, timeout: float) -> None:
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(
            f"Request {request_id} ({method}) timed out after {timeout:g}s "
            f"waiting for SSE response"
        )


class TransportError(McpChatError):
    """An HTTP exchange with the server failed."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.url = url
        status_hint = f" (status={status_code})" if status_code is not None else ""
        url_hint = f" [{url}]" if url else ""
        super().__init__(f"{detail}{status_hint}{url_hint}")


class SessionNotReadyError(TransportError):
    """A request was attempted before the message endpoint was known."""


class ProtocolError(McpChatError):
    """A payload was not the JSON-RPC document it should have been."""

    def __init__(self, detail: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(detail)


class ToolExecutionError(McpChatError):
    """A tools/call round trip failed or returned an error."""

    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool call failed ({tool_name}): {detail}")


class DelegationFailure(McpChatError):
    """The hosted assistant could not be used for this prompt."""


class LoopExhausted(McpChatError):
    """The tool-call loop ran out of iterations without an answer."""
