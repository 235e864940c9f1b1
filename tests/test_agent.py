"""End-to-end tests: ChatAgent over the fake MCP server."""

from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage

from mcp_chat.agent import ChatAgent, IdentityContext, build_prompt, build_strategy
from mcp_chat.bridge import McpToolProxy
from mcp_chat.config import Settings
from mcp_chat.session import McpSession
from mcp_chat.strategies import (
    NO_TOOLS_AVAILABLE,
    DelegatedAssistantStrategy,
    FunctionCallingStrategy,
)
from tests.conftest import SSE_URL, ScriptedChatModel


class TestPrompt:
    def test_identity_appended(self):
        prompt = build_prompt("  Who is my top lender?  ", IdentityContext(42, "admin"))
        assert prompt == "Who is my top lender? with user_id = 42 and user_role = 'admin'"

    def test_no_identity(self):
        assert build_prompt(" hi ") == "hi"


class TestBuildStrategy:
    def test_auto_without_openai_is_delegated(self):
        strategy = build_strategy(Settings.from_env({}), McpSession(SSE_URL))
        assert isinstance(strategy, DelegatedAssistantStrategy)
        assert strategy.assistant is None

    def test_auto_with_openai_is_function_calling(self):
        settings = Settings.from_env({"OPENAI_API_KEY": "sk-test"})
        strategy = build_strategy(settings, McpSession(SSE_URL))
        assert isinstance(strategy, FunctionCallingStrategy)
        assert strategy.llm is not None

    def test_explicit_assistant(self):
        settings = Settings.from_env({
            "OPENAI_API_KEY": "sk-test", "ASSISTANT_API_KEY": "vk", "ASSISTANT_ID": "a1",
        })
        strategy = build_strategy(settings, McpSession(SSE_URL), "assistant")
        assert isinstance(strategy, DelegatedAssistantStrategy)
        assert strategy.assistant.assistant_id == "a1"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_strategy(Settings.from_env({}), McpSession(SSE_URL), "magic")


class TestChatAgent:
    """Full path: handshake, initialize, strategy, tools/call over SSE."""

    @pytest.mark.asyncio
    async def test_heuristic_answer_over_sse(self, server):
        server.tool_results["GetTopAgent"] = lambda args: "Jane Doe"
        async with server.client() as client:
            session = McpSession(SSE_URL, http_client=client)
            agent = ChatAgent(session, build_strategy(Settings.from_env({}), session))
            async with agent:
                assert agent.tool_count == 2
                answer = await agent.ask("who is the top agent")
        assert answer == "Jane Doe"
        call = server.requests[-1]
        assert call["method"] == "tools/call"
        assert call["params"]["name"] == "GetTopAgent"

    @pytest.mark.asyncio
    async def test_function_calling_over_sse(self, server):
        server.tool_results["GetWeather"] = lambda args: f"It is sunny and 75°F in {args['city']}."
        llm = ScriptedChatModel([
            AIMessage(
                content="",
                tool_calls=[{"name": "GetWeather", "args": {"city": "Reno"}, "id": "call_1"}],
                response_metadata={"finish_reason": "tool_calls"},
            ),
            AIMessage(content="It's sunny in Reno!", response_metadata={"finish_reason": "stop"}),
        ])
        async with server.client() as client:
            session = McpSession(SSE_URL, http_client=client)
            agent = ChatAgent(session, FunctionCallingStrategy(McpToolProxy(session), llm))
            async with agent:
                answer = await agent.ask("Weather in Reno?", IdentityContext(7, "agent"))

        assert answer == "It's sunny in Reno!"
        assert llm.calls[0][0].content == "Weather in Reno? with user_id = 7 and user_role = 'agent'"
        assert llm.calls[1][-1].content == "It is sunny and 75°F in Reno."

    @pytest.mark.asyncio
    async def test_degraded_session_reports_no_tools(self, server):
        server.errors["tools/list"] = {"code": -32603, "message": "db down"}
        async with server.client() as client:
            session = McpSession(SSE_URL, http_client=client)
            agent = ChatAgent(session, build_strategy(Settings.from_env({}), session))
            async with agent:
                assert agent.tool_count == 0
                assert await agent.ask("who is the top agent") == NO_TOOLS_AVAILABLE

    @pytest.mark.asyncio
    async def test_ask_before_start(self):
        session = McpSession(SSE_URL)
        agent = ChatAgent(session, build_strategy(Settings.from_env({}), session))
        assert await agent.ask("anything") == NO_TOOLS_AVAILABLE
