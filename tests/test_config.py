"""Tests for environment-driven settings."""

import pytest

from mcp_chat.config import DEFAULT_OPENAI_MODEL, DEFAULT_SSE_ENDPOINT, Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.sse_endpoint == DEFAULT_SSE_ENDPOINT
        assert settings.handshake_timeout == 10.0
        assert settings.request_timeout == 30.0
        assert settings.openai_model == DEFAULT_OPENAI_MODEL
        assert not settings.has_openai
        assert not settings.has_assistant

    def test_reads_variables(self):
        settings = Settings.from_env({
            "MCP_SSE_ENDPOINT": "https://tools.example.com/sse",
            "MCP_REQUEST_TIMEOUT": "5",
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_MODEL": "gpt-4o-mini",
            "ASSISTANT_API_KEY": "vk",
            "ASSISTANT_ID": "asst-1",
        })
        assert settings.sse_endpoint == "https://tools.example.com/sse"
        assert settings.request_timeout == 5.0
        assert settings.has_openai
        assert settings.openai_model == "gpt-4o-mini"
        assert settings.has_assistant

    def test_blank_values_treated_as_unset(self):
        settings = Settings.from_env({"OPENAI_API_KEY": "  ", "MCP_HANDSHAKE_TIMEOUT": ""})
        assert not settings.has_openai
        assert settings.handshake_timeout == 10.0

    def test_assistant_needs_both_key_and_id(self):
        assert not Settings.from_env({"ASSISTANT_API_KEY": "vk"}).has_assistant

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, value):
        with pytest.raises(ValueError, match="MCP_REQUEST_TIMEOUT"):
            Settings.from_env({"MCP_REQUEST_TIMEOUT": value})
