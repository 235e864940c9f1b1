"""
ChatAgent — one session, one answer strategy, one ask() call per question.

Usage:
    settings = Settings.from_env()
    session = McpSession(settings.sse_endpoint)
    agent = ChatAgent(session, build_strategy(settings, session))

    async with agent:
        answer = await agent.ask("Who is the top agent?", IdentityContext(42, "admin"))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from mcp_chat.assistant import AssistantClient
from mcp_chat.bridge import McpToolProxy
from mcp_chat.config import Settings
from mcp_chat.session import McpSession
from mcp_chat.strategies import (
    NO_TOOLS_AVAILABLE,
    AnswerStrategy,
    DelegatedAssistantStrategy,
    FunctionCallingStrategy,
)

logger = logging.getLogger(__name__)

STRATEGY_CHOICES = ("auto", "openai", "assistant")

SESSION_UNAVAILABLE = "The tool server is not reachable right now. Please try again later."


@dataclass(frozen=True)
class IdentityContext:
    """Who is asking, appended to the prompt so tools can scope their data."""
    user_id: Any
    user_role: str

    def render(self) -> str:
        return f" with user_id = {self.user_id} and user_role = '{self.user_role}'"


def build_prompt(question: str, identity: IdentityContext | None = None) -> str:
    prompt = question.strip()
    if identity is not None:
        prompt += identity.render()
    return prompt


def build_llm(settings: Settings):
    """LangChain chat model for the function-calling strategy, or None."""
    if not settings.has_openai:
        return None
    from langchain_openai import ChatOpenAI

    logger.info(f"Using OpenAI model: {settings.openai_model}")
    return ChatOpenAI(model=settings.openai_model, api_key=settings.openai_api_key)


def build_assistant(settings: Settings) -> AssistantClient | None:
    if not settings.has_assistant:
        return None
    return AssistantClient(
        settings.assistant_api_key,
        settings.assistant_id,
        base_url=settings.assistant_base_url,
    )


def build_strategy(
    settings: Settings,
    session: McpSession,
    kind: str = "auto",
    proxy: McpToolProxy | None = None,
) -> AnswerStrategy:
    """
    Pick the answer strategy.

    "auto" uses function calling when an OpenAI key is configured and the
    hosted assistant (with heuristic fallback) otherwise.
    """
    if kind not in STRATEGY_CHOICES:
        raise ValueError(f"Unknown strategy {kind!r}. Choose from {STRATEGY_CHOICES}")

    proxy = proxy or McpToolProxy(session)
    if kind == "openai" or (kind == "auto" and settings.has_openai):
        return FunctionCallingStrategy(proxy, build_llm(settings))
    return DelegatedAssistantStrategy(proxy, build_assistant(settings))


class ChatAgent:
    """
    Answers questions with tools from one MCP session.

    start() connects and initializes; a failed initialize still leaves the
    agent usable (it answers that no tools are available). ask() never raises.
    """

    def __init__(self, session: McpSession, strategy: AnswerStrategy):
        self.session = session
        self.strategy = strategy

    @classmethod
    def from_settings(cls, settings: Settings, kind: str = "auto", **session_kwargs) -> "ChatAgent":
        session = McpSession(
            settings.sse_endpoint,
            handshake_timeout=settings.handshake_timeout,
            request_timeout=settings.request_timeout,
            **session_kwargs,
        )
        return cls(session, build_strategy(settings, session, kind))

    @property
    def tool_count(self) -> int:
        return self.session.tool_count

    async def start(self) -> int:
        """
        Connect and initialize. Returns the tool count.

        Raises:
            HandshakeTimeout / TransportError: the stream could not be opened.
        """
        logger.info("Initializing MCP SSE client...")
        await self.session.connect()
        count = await self.session.initialize()
        logger.info(f"MCP client ready with {count} tools ({self.strategy.name} strategy)")
        return count

    async def ask(self, question: str, identity: IdentityContext | None = None) -> str:
        if not self.session.is_connected():
            if self.session.tool_count == 0:
                return NO_TOOLS_AVAILABLE
            return SESSION_UNAVAILABLE

        return await self.strategy.answer(build_prompt(question, identity))

    async def stop(self) -> None:
        logger.info("Disconnecting MCP SSE client...")
        try:
            await self.strategy.aclose()
        finally:
            await self.session.disconnect()

    async def __aenter__(self) -> "ChatAgent":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
