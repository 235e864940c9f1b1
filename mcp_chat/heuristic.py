"""
Keyword-scored tool selection, used when no LLM or assistant can decide.

Scoring per tool:
    +50  tool name appears in the prompt (case-insensitive)
    +10  per prompt word also found in the tool description
    +20  per declared property name that appears in the prompt

Zero-score tools are dropped. Equal scores keep the first tool in the
session's tool order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from mcp_chat.bridge import NO_TOOL_RESPONSE, McpToolProxy
from mcp_chat.schema import Tool

logger = logging.getLogger(__name__)

NO_SUITABLE_TOOL = "I couldn't find a suitable tool to answer your question."

NAME_SCORE = 50
DESCRIPTION_WORD_SCORE = 10
PROPERTY_SCORE = 20


@dataclass(frozen=True)
class ScoredTool:
    tool: Tool
    score: int


def score_tool(tool: Tool, prompt: str) -> int:
    prompt_lower = prompt.lower()
    score = 0

    if tool.name.lower() in prompt_lower:
        score += NAME_SCORE

    description_words = set(tool.description.lower().split(" "))
    prompt_words = prompt_lower.split(" ")
    score += DESCRIPTION_WORD_SCORE * sum(1 for w in prompt_words if w in description_words)

    for prop_name in tool.input_schema.properties:
        if prop_name.lower() in prompt_lower:
            score += PROPERTY_SCORE

    return score


def rank_tools(tools: Iterable[Tool], prompt: str) -> list[ScoredTool]:
    """Tools with a positive score, best first. sorted() is stable, so ties keep tool order."""
    scored = [ScoredTool(t, score_tool(t, prompt)) for t in tools]
    return sorted((s for s in scored if s.score > 0), key=lambda s: s.score, reverse=True)


def find_best_tool(tools: Sequence[Tool], prompt: str) -> Tool | None:
    ranked = rank_tools(tools, prompt)
    return ranked[0].tool if ranked else None


def extract_arguments(tool: Tool, prompt: str) -> dict[str, Any]:
    """
    Guess arguments from the prompt.

    Looks for `<property>: value` (or `<property> value`, optionally quoted)
    in the lowercased prompt. String properties with no match get the whole
    prompt.
    """
    arguments: dict[str, Any] = {}
    prompt_lower = prompt.lower()

    for prop_name, prop in tool.input_schema.properties.items():
        pattern = re.escape(prop_name.lower()) + r"[:\s]+[\"']?([^\"']+)[\"']?"
        match = re.search(pattern, prompt_lower)
        if match:
            arguments[prop_name] = match.group(1).strip()
        elif prop.primary_type == "string":
            arguments[prop_name] = prompt

    return arguments


class HeuristicToolMatcher:
    """Picks one tool by keyword score and calls it through the proxy."""

    def __init__(self, proxy: McpToolProxy):
        self.proxy = proxy

    async def answer(self, prompt: str) -> str:
        tool = find_best_tool(self.proxy.tools, prompt)
        if tool is None:
            return NO_SUITABLE_TOOL

        logger.info(f"Using tool: {tool.name}")
        arguments = extract_arguments(tool, prompt)
        text = await self.proxy.call(tool.name, arguments)
        return text or NO_TOOL_RESPONSE
