"""
Runtime settings, read from the environment (and a `.env` file if present).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from mcp_chat.assistant import DEFAULT_ASSISTANT_BASE_URL
from mcp_chat.transport import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_REQUEST_TIMEOUT

DEFAULT_SSE_ENDPOINT = "http://localhost:5000/sse"
DEFAULT_OPENAI_MODEL = "gpt-4o"


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _optional(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


@dataclass
class Settings:
    sse_endpoint: str = DEFAULT_SSE_ENDPOINT
    handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    assistant_api_key: str | None = None
    assistant_id: str | None = None
    assistant_base_url: str = DEFAULT_ASSISTANT_BASE_URL

    @property
    def has_openai(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_assistant(self) -> bool:
        return bool(self.assistant_api_key and self.assistant_id)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (tests).
            dotenv: Load a .env file into os.environ first. Ignored when env is given.
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        return cls(
            sse_endpoint=_optional(env, "MCP_SSE_ENDPOINT") or DEFAULT_SSE_ENDPOINT,
            handshake_timeout=_float(env, "MCP_HANDSHAKE_TIMEOUT", DEFAULT_HANDSHAKE_TIMEOUT),
            request_timeout=_float(env, "MCP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            openai_api_key=_optional(env, "OPENAI_API_KEY"),
            openai_model=_optional(env, "OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            assistant_api_key=_optional(env, "ASSISTANT_API_KEY"),
            assistant_id=_optional(env, "ASSISTANT_ID"),
            assistant_base_url=_optional(env, "ASSISTANT_BASE_URL") or DEFAULT_ASSISTANT_BASE_URL,
        )
