"""
Bridge between an MCP session and the answering back-ends.

This module turns remote tools into things an answer strategy can use:
function definitions to hand to an LLM, and a proxy that runs a tools/call
round trip and always comes back with text.

Usage:
    from mcp_chat.bridge import McpToolProxy, tool_definitions

    proxy = McpToolProxy(session)
    text = await proxy.call("GetWeather", {"city": "Reno"})

    llm = llm.bind_tools(tool_definitions(session.tools))
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Union

from mcp_chat.errors import ToolExecutionError
from mcp_chat.schema import Tool, translate_input_schema
from mcp_chat.session import McpSession

logger = logging.getLogger(__name__)

NO_TOOL_RESPONSE = "No response from tool."

# Argument values a tool call may carry. Nested objects/arrays are passed
# through as decoded JSON.
ArgumentValue = Union[str, int, float, bool, None, list, dict]
Arguments = Mapping[str, ArgumentValue]


def tool_definition(tool: Tool) -> dict[str, Any]:
    """OpenAI-style function definition for one MCP tool."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description or tool.name,
            "parameters": translate_input_schema(tool.input_schema),
        },
    }


def tool_definitions(tools: Iterable[Tool]) -> list[dict[str, Any]]:
    return [tool_definition(t) for t in tools]


def error_payload(exc: BaseException | str, error: str = "Failed to execute tool") -> str:
    """Serialized error-shaped tool result, fed back to the model as text."""
    message = exc if isinstance(exc, str) else str(exc)
    return json.dumps({"error": error, "message": message})


def extract_text(result: Any) -> str:
    """
    Pull the text out of a tools/call result.

    result.content[0].text when present; otherwise the first content entry
    serialized as JSON; NO_TOOL_RESPONSE when there is no content at all.
    """
    if not isinstance(result, dict):
        return NO_TOOL_RESPONSE
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return NO_TOOL_RESPONSE

    first = content[0]
    if isinstance(first, dict) and "text" in first:
        text = first["text"]
        if text is None:
            return NO_TOOL_RESPONSE
        return text if isinstance(text, str) else json.dumps(text)
    return json.dumps(first)


class McpToolProxy:
    """Runs tools/call through a session. call() never raises."""

    def __init__(self, session: McpSession):
        self.session = session

    @property
    def tools(self) -> tuple[Tool, ...]:
        return self.session.tools

    async def call(self, tool_name: str, arguments: Arguments | None = None) -> str:
        logger.info(f"Tool call: {tool_name}")
        try:
            return await self._call(tool_name, dict(arguments or {}))
        except Exception as e:
            logger.error(f"Error calling MCP tool {tool_name}: {e}")
            return error_payload(e)

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> str:
        response = await self.session.request(
            "tools/call", {"name": tool_name, "arguments": arguments}
        )
        if response.is_error:
            detail = response.error.get("message") or json.dumps(response.error)
            raise ToolExecutionError(tool_name, detail)
        return extract_text(response.result)
