"""
Client for a hosted assistant chat API (Vapi-style `POST /chat`).

The assistant has the MCP tools configured on its side; we only send the
prompt and read back its `output` list:

    {"output": [{"role": "assistant", "content": "..."},
                {"role": "tool", "content": "[{\"type\": \"text\", \"text\": \"...\"}]"}]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from mcp_chat.errors import DelegationFailure

logger = logging.getLogger(__name__)

DEFAULT_ASSISTANT_BASE_URL = "https://api.vapi.ai"

MIN_CONTENT_LENGTH = 10


@dataclass(frozen=True)
class AssistantOutput:
    role: str
    content: str


@dataclass(frozen=True)
class AssistantReply:
    """The part of an assistant reply we act on."""
    content: str
    # True when content was a JSON array of {type, text} parts, now joined
    from_parts: bool = False


def parse_outputs(payload: Any) -> list[AssistantOutput]:
    if not isinstance(payload, dict):
        return []
    raw = payload.get("output")
    if not isinstance(raw, list):
        return []
    outputs = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        content = entry.get("content")
        outputs.append(AssistantOutput(
            role=str(entry.get("role") or ""),
            content=content if isinstance(content, str) else "",
        ))
    return outputs


def select_output(outputs: list[AssistantOutput]) -> AssistantOutput | None:
    """The tool output if any, else the first entry with real content."""
    tool_output = next((o for o in outputs if o.role == "tool"), None)
    if tool_output is not None:
        return tool_output
    return next((o for o in outputs if len(o.content) > MIN_CONTENT_LENGTH), None)


def join_text_parts(content: str) -> str | None:
    """Join a `[{"type": "text", "text": ...}, ...]` string with spaces. None if it isn't one."""
    stripped = content.strip()
    if not (stripped.startswith("[") and stripped.endswith("]")):
        return None
    try:
        parts = json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("Output looked like a JSON array but did not parse")
        return None
    if not isinstance(parts, list) or not parts:
        return None
    texts = [p.get("text") for p in parts if isinstance(p, dict)]
    return " ".join(t for t in texts if isinstance(t, str))


def interpret_reply(payload: Any) -> AssistantReply:
    """
    Reduce a chat response body to one piece of content.

    Raises:
        DelegationFailure: no output entry worth using.
    """
    output = select_output(parse_outputs(payload))
    if output is None:
        raise DelegationFailure("Assistant reply carried no usable output")

    joined = join_text_parts(output.content)
    if joined is not None:
        return AssistantReply(content=joined, from_parts=True)
    return AssistantReply(content=output.content)


class AssistantClient:
    """Thin async wrapper over the hosted assistant's chat endpoint."""

    def __init__(
        self,
        api_key: str,
        assistant_id: str,
        *,
        base_url: str = DEFAULT_ASSISTANT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.assistant_id = assistant_id
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout
        logger.info(f"Using hosted assistant: {assistant_id}")

    async def chat(self, prompt: str) -> AssistantReply:
        """
        Send one prompt.

        Raises:
            DelegationFailure: HTTP failure, non-success status, bad body.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

        url = f"{self.base_url}/chat"
        body = {"assistantId": self.assistant_id, "input": prompt}
        try:
            response = await self._client.post(url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise DelegationFailure(f"Assistant request failed: {e}") from e

        if response.is_error:
            logger.error(f"Assistant error: {response.text[:500]}")
            raise DelegationFailure(f"Assistant returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DelegationFailure(f"Assistant returned a non-JSON body: {e}") from e

        return interpret_reply(payload)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
