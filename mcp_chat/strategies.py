"""
Answer strategies — how a prompt turns into tool calls and an answer.

Two variants share one session/proxy underneath:

  FunctionCallingStrategy
      A LangChain chat model is given the tools as function definitions and
      drives up to five completion rounds, calling tools as it asks.

  DelegatedAssistantStrategy
      A hosted assistant answers the prompt on its own. If it fails, or
      there is none, the keyword HeuristicToolMatcher picks a tool instead.

Both always return a string. Tool failures become tool-result text the
model can react to; nothing from a single exchange is raised to the caller.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from mcp_chat.assistant import AssistantClient
from mcp_chat.bridge import McpToolProxy, error_payload, tool_definitions
from mcp_chat.errors import LoopExhausted
from mcp_chat.heuristic import HeuristicToolMatcher
from mcp_chat.sanitize import Sanitizer, is_invalid_output, sanitize, sanitize_single_line

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 5

NO_TOOLS_AVAILABLE = "No tools available from MCP server."
LLM_NOT_CONFIGURED = "OpenAI client not configured."
LOOP_FALLBACK = "I couldn't generate a proper answer. Please try again."
ANSWER_FAILED = "Sorry, something went wrong while generating an answer. Please try again."
NO_RESPONSE_CONTENT = "No response content."


class AnswerStrategy(ABC):
    """Turns one prompt into one user-facing answer."""

    name: str = ""

    def __init__(self, proxy: McpToolProxy):
        self.proxy = proxy

    @abstractmethod
    async def answer(self, prompt: str) -> str:
        ...

    async def aclose(self) -> None:
        """Release back-end clients. Default: nothing to release."""


def _message_text(message: AIMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class FunctionCallingStrategy(AnswerStrategy):
    """
    Bounded LLM tool loop.

    Each round asks the model for a completion over the whole turn history:
      - finish_reason "stop" with text  -> sanitized answer, done
      - finish_reason "tool_calls"      -> run every call, append results, next round
      - anything else                   -> give up
    The model is asked at most max_iterations times.
    """

    name = "openai"

    def __init__(
        self,
        proxy: McpToolProxy,
        llm: BaseChatModel | None,
        *,
        max_iterations: int = MAX_ITERATIONS,
        sanitizer: Sanitizer = sanitize,
    ):
        super().__init__(proxy)
        self.llm = llm
        self.max_iterations = max_iterations
        self.sanitizer = sanitizer

    async def answer(self, prompt: str) -> str:
        tools = self.proxy.tools
        if not tools:
            return NO_TOOLS_AVAILABLE
        if self.llm is None:
            return LLM_NOT_CONFIGURED

        logger.info("Processing with OpenAI...")
        try:
            return await self._run(prompt, tool_definitions(tools))
        except LoopExhausted as e:
            logger.warning(str(e))
            return LOOP_FALLBACK
        except Exception as e:
            logger.error(f"OpenAI processing failed: {e}", exc_info=True)
            return ANSWER_FAILED

    async def _run(self, prompt: str, definitions: list[dict[str, Any]]) -> str:
        messages: list[BaseMessage] = [HumanMessage(content=prompt)]
        model = self.llm.bind_tools(definitions)

        for iteration in range(1, self.max_iterations + 1):
            completion: AIMessage = await model.ainvoke(messages)
            finish_reason = completion.response_metadata.get("finish_reason")
            text = _message_text(completion)

            if finish_reason == "stop" and text:
                logger.info(f"OpenAI response generated (round {iteration})")
                return self.sanitizer(text)

            if finish_reason == "tool_calls":
                messages.append(completion)
                messages.extend(await self._run_tool_calls(completion))
                continue

            logger.warning(f"Unexpected finish reason: {finish_reason}")
            raise LoopExhausted(f"Stopped after round {iteration}: finish reason {finish_reason!r}")

        raise LoopExhausted(f"No answer after {self.max_iterations} rounds")

    async def _run_tool_calls(self, completion: AIMessage) -> list[ToolMessage]:
        results = []
        for call in completion.tool_calls:
            text = await self.proxy.call(call["name"], call.get("args") or {})
            results.append(ToolMessage(content=text, tool_call_id=call["id"]))

        # Calls whose argument JSON didn't parse still need an answer per id
        for bad in completion.invalid_tool_calls:
            logger.error(f"Invalid tool call {bad.get('name')}: {bad.get('error')}")
            if not bad.get("id"):
                logger.warning(f"Skipping invalid tool call {bad.get('name')} without an id")
                continue
            results.append(ToolMessage(
                content=error_payload(bad.get("error") or "Could not parse tool arguments"),
                tool_call_id=bad["id"],
            ))
        return results


class DelegatedAssistantStrategy(AnswerStrategy):
    """Hosted assistant first; keyword tool matching when it can't be used."""

    name = "assistant"

    def __init__(
        self,
        proxy: McpToolProxy,
        assistant: AssistantClient | None,
        *,
        matcher: HeuristicToolMatcher | None = None,
        sanitizer: Sanitizer = sanitize_single_line,
    ):
        super().__init__(proxy)
        self.assistant = assistant
        self.matcher = matcher or HeuristicToolMatcher(proxy)
        self.sanitizer = sanitizer

    async def answer(self, prompt: str) -> str:
        if not self.proxy.tools:
            return NO_TOOLS_AVAILABLE

        if self.assistant is None:
            logger.info("No hosted assistant configured, using simple tool matching")
            return await self.matcher.answer(prompt)

        logger.info("Sending to hosted assistant...")
        try:
            reply = await self.assistant.chat(prompt)
        except Exception as e:
            logger.error(f"Assistant processing failed: {e}")
            logger.info("Falling back to simple tool matching...")
            return await self.matcher.answer(prompt)

        if reply.from_parts and is_invalid_output(reply.content):
            logger.info("Tool output contains invalid/debug content, ignoring...")
            return NO_RESPONSE_CONTENT

        return self.sanitizer(reply.content) or NO_RESPONSE_CONTENT

    async def aclose(self) -> None:
        if self.assistant is not None:
            await self.assistant.aclose()
