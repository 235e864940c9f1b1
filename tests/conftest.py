"""Shared fakes: an in-process MCP SSE server, a tool proxy and a scripted chat model."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from mcp_chat.schema import Tool, parse_tools

SSE_URL = "https://host/sse"

WEATHER_TOOL = {
    "name": "GetWeather",
    "description": "Returns current conditions for a city",
    "inputSchema": {
        "type": "object",
        "properties": {"city": {"type": ["string"], "description": "City name"}},
        "required": ["city"],
    },
}

TOP_AGENT_TOOL = {
    "name": "GetTopAgent",
    "description": "Top agent ranking by closed volume",
    "inputSchema": {
        "type": "object",
        "properties": {
            "year": {"type": ["integer", "null"], "description": "Year", "default": 2024},
        },
    },
}


def sse_event(data: str, event: str | None = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    for line in data.split("\n"):
        lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


class FakeMcpServer:
    """
    MCP-over-SSE server behind httpx.MockTransport.

    GET returns a text/event-stream fed from a queue; POSTed JSON-RPC
    requests are answered by pushing a `message` event onto that stream.
    """

    def __init__(
        self,
        tools: list[dict] | None = None,
        endpoint: str | None = "/messages?session_id=abc",
    ):
        self.tools = tools if tools is not None else [WEATHER_TOOL, TOP_AGENT_TOOL]
        self.endpoint = endpoint
        self.requests: list[dict] = []
        self.sse_status = 200
        self.post_status = 202
        self.silent: set[str] = set()
        self.errors: dict[str, dict] = {}
        self.tool_results: dict[str, Callable[[dict], Any]] = {}
        self.sse_headers: dict[str, str] = {}
        self.post_urls: list[str] = []
        self.post_gate: asyncio.Event | None = None
        self.session_id: str | None = None
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()

    def push(self, raw: str) -> None:
        self._queue.put_nowait(raw)

    def push_event(self, data: str, event: str | None = None) -> None:
        self.push(sse_event(data, event))

    def reply(self, request_id: str, result: Any) -> None:
        self.push_event(json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result}), "message")

    def close_stream(self) -> None:
        self._queue.put_nowait(None)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    async def _stream(self):
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk.encode("utf-8")

    def result_for(self, body: dict) -> Any:
        method = body["method"]
        if method == "initialize":
            result = {
                "protocolVersion": body["params"]["protocolVersion"],
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "fake-mcp", "version": "1.0"},
            }
            if self.session_id is not None:
                result["sessionId"] = self.session_id
            return result
        if method == "tools/list":
            return {"tools": self.tools}
        if method == "tools/call":
            name = body["params"]["name"]
            fn = self.tool_results.get(name)
            text = fn(body["params"]["arguments"]) if fn else f"{name} ok"
            if isinstance(text, dict):
                return text
            return {"content": [{"type": "text", "text": text}]}
        return {}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.sse_headers = dict(request.headers)
            if self.sse_status != 200:
                return httpx.Response(self.sse_status, text="stream unavailable")
            if self.endpoint is not None:
                self.push_event(self.endpoint, "endpoint")
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=self._stream(),
            )

        body = json.loads(request.content)
        self.requests.append(body)
        self.post_urls.append(str(request.url))
        if self.post_gate is not None:
            await self.post_gate.wait()
        if self.post_status >= 400:
            return httpx.Response(self.post_status, text="rejected")

        method = body["method"]
        if method in self.errors:
            self.push_event(json.dumps({
                "jsonrpc": "2.0", "id": body["id"], "error": self.errors[method],
            }), "message")
        elif method not in self.silent:
            self.reply(body["id"], self.result_for(body))
        return httpx.Response(202, text="Accepted")


@pytest.fixture
def server() -> FakeMcpServer:
    return FakeMcpServer()


class FakeProxy:
    """Stands in for McpToolProxy: fixed tools, canned results, records calls."""

    def __init__(self, tools: list[dict], results: dict[str, str] | None = None):
        self.tools = tuple(parse_tools(tools))
        self.results = results or {}
        self.calls: list[tuple[str, dict]] = []

    async def call(self, tool_name: str, arguments: dict | None = None) -> str:
        self.calls.append((tool_name, dict(arguments or {})))
        return self.results.get(tool_name, f"{tool_name} ok")


class ScriptedChatModel:
    """Minimal LangChain-like chat model returning pre-built AIMessages."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.bound_tools = None
        self.calls: list[list] = []

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages, **kwargs):
        self.calls.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_tools(*raw: dict) -> tuple[Tool, ...]:
    return tuple(parse_tools(list(raw)))
