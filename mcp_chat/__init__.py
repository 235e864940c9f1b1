"""
MCP chat client — answer questions with tools from a remote MCP server.

Architecture:
    ┌──────────────┐   GET  (SSE stream)   ┌──────────────┐
    │  McpSession  │ ◄──────────────────── │  MCP server  │
    │ (reader task)│   POST (JSON-RPC)     │  (tools)     │
    └──────┬───────┘ ────────────────────► └──────────────┘
           │ tools/call
    ┌──────┴───────┐
    │ AnswerStrategy│  FunctionCalling (LLM loop)
    │              │  DelegatedAssistant (+ heuristic fallback)
    └──────────────┘

The server streams Server-Sent Events. Its first `endpoint` event says
where to POST JSON-RPC requests; the replies come back on the stream and
are matched to their request by id.

ChatAgent ties a session and a strategy together behind ask().
"""

__version__ = "0.1.0"

from mcp_chat.agent import ChatAgent, IdentityContext, build_strategy
from mcp_chat.bridge import McpToolProxy
from mcp_chat.config import Settings
from mcp_chat.errors import (
    DelegationFailure,
    HandshakeTimeout,
    McpChatError,
    ProtocolError,
    RequestTimeout,
    ToolExecutionError,
    TransportError,
)
from mcp_chat.session import McpSession, SessionState
from mcp_chat.strategies import (
    AnswerStrategy,
    DelegatedAssistantStrategy,
    FunctionCallingStrategy,
)

__all__ = [
    "AnswerStrategy",
    "ChatAgent",
    "DelegatedAssistantStrategy",
    "DelegationFailure",
    "FunctionCallingStrategy",
    "HandshakeTimeout",
    "IdentityContext",
    "McpChatError",
    "McpSession",
    "McpToolProxy",
    "ProtocolError",
    "RequestTimeout",
    "SessionState",
    "Settings",
    "ToolExecutionError",
    "TransportError",
    "build_strategy",
]
