"""Tests for the hosted assistant client and reply interpretation."""

from __future__ import annotations

import json

import httpx
import pytest

from mcp_chat.assistant import (
    AssistantClient,
    AssistantOutput,
    interpret_reply,
    join_text_parts,
    select_output,
)
from mcp_chat.errors import DelegationFailure


def parts(*texts: str) -> str:
    return json.dumps([{"type": "text", "text": t} for t in texts])


class TestInterpretReply:
    """Choosing and flattening output entries."""

    def test_tool_output_preferred(self):
        outputs = [
            AssistantOutput("assistant", "Hi, this is a long greeting."),
            AssistantOutput("tool", "tool says hi"),
        ]
        assert select_output(outputs).role == "tool"

    def test_first_long_entry_otherwise(self):
        outputs = [AssistantOutput("assistant", "short"), AssistantOutput("assistant", "a longer answer")]
        assert select_output(outputs).content == "a longer answer"

    def test_join_text_parts(self):
        assert join_text_parts(parts("Top agent:", "Jane")) == "Top agent: Jane"
        assert join_text_parts("plain") is None
        assert join_text_parts("[not json]") is None

    def test_parts_are_flagged(self):
        reply = interpret_reply({"output": [{"role": "tool", "content": parts("a", "b")}]})
        assert reply.content == "a b"
        assert reply.from_parts

    def test_plain_content(self):
        reply = interpret_reply({"output": [{"role": "assistant", "content": "The answer is 42."}]})
        assert reply.content == "The answer is 42."
        assert not reply.from_parts

    @pytest.mark.parametrize("payload", [
        {},
        {"output": []},
        {"output": [{"role": "assistant", "content": "tiny"}]},
        [],
    ])
    def test_nothing_usable(self, payload):
        with pytest.raises(DelegationFailure):
            interpret_reply(payload)


class TestAssistantClient:
    """HTTP exchange with the chat endpoint."""

    @pytest.mark.asyncio
    async def test_posts_prompt_with_bearer_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"output": [{"role": "assistant", "content": "Answer text here"}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = AssistantClient("key-1", "asst-9", base_url="https://api.example.com/", http_client=http)
            reply = await client.chat("hello")

        assert reply.content == "Answer text here"
        assert seen["url"] == "https://api.example.com/chat"
        assert seen["auth"] == "Bearer key-1"
        assert seen["body"] == {"assistantId": "asst-9", "input": "hello"}

    @pytest.mark.asyncio
    async def test_error_status_is_delegation_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized"))
        async with httpx.AsyncClient(transport=transport) as http:
            client = AssistantClient("bad", "asst", http_client=http)
            with pytest.raises(DelegationFailure):
                await client.chat("hello")

    @pytest.mark.asyncio
    async def test_connect_error_is_delegation_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = AssistantClient("k", "a", http_client=http)
            with pytest.raises(DelegationFailure):
                await client.chat("hello")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with httpx.AsyncClient(transport=transport) as http:
            client = AssistantClient("k", "a", http_client=http)
            with pytest.raises(DelegationFailure):
                await client.chat("hello")
