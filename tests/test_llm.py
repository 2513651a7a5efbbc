"""Tests for statement_intake.llm -- LLM adapter, prompt construction, and response parsing.

All tests use mocked HTTP responses. No real API calls are made.
"""

from __future__ import annotations

from unittest.mock import patch

import httpx

from statement_intake.llm import (
    AnthropicAdapter,
    LLMAdapter,
    NullAdapter,
    _build_system_prompt,
    _build_user_prompt,
    _parse_response,
    format_amount,
)

# ---------------------------------------------------------------------------
# Shared test data
# ---------------------------------------------------------------------------

CATALOG = [
    "Receitas > PIX Recebido Cliente",
    "Transporte > Aplicativos",
    "Alimentacao > Restaurantes",
    "Transferencia Interna",
]

API_URL = "https://api.anthropic.com/v1/messages"


def _make_anthropic_response(text: str) -> dict:
    """Build a mock Anthropic Messages API response body."""
    return {
        "id": "msg_test123",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "model": "claude-sonnet-4-20250514",
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 120, "output_tokens": 8},
    }


def _response(status_code: int, **kwargs) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        request=httpx.Request("POST", API_URL),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Prompt construction and parsing
# ---------------------------------------------------------------------------


class TestPrompts:
    def test_format_amount(self):
        assert format_amount(4500) == "R$ 45,00"
        assert format_amount(-123456) == "R$ 1234,56"

    def test_system_prompt_lists_catalog(self):
        prompt = _build_system_prompt(CATALOG)

        assert "## Categories" in prompt
        for entry in CATALOG:
            assert f"- {entry}" in prompt

    def test_user_prompt(self):
        prompt = _build_user_prompt("RESTAURANTE SABOR", 8000)

        assert '"RESTAURANTE SABOR"' in prompt
        assert "R$ 80,00" in prompt


class TestParseResponse:
    def test_plain_answer(self):
        assert _parse_response("Transporte > Aplicativos") == "Transporte > Aplicativos"

    def test_first_non_empty_line(self):
        assert _parse_response("\n\nTransferencia Interna\nBecause...") == "Transferencia Interna"

    def test_strips_bullet_and_quotes(self):
        assert _parse_response('- "Transporte > Aplicativos"') == "Transporte > Aplicativos"

    def test_empty(self):
        assert _parse_response("  \n ") is None


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class TestNullAdapter:
    def test_returns_none(self):
        assert NullAdapter().suggest_category("UBER", 4500, CATALOG) is None

    def test_conforms_to_protocol(self):
        adapter: LLMAdapter = NullAdapter()
        assert hasattr(adapter, "suggest_category")


class TestAnthropicAdapter:
    """Tests for the AnthropicAdapter with mocked HTTP responses."""

    def _make_adapter(self, api_key_env: str = "TEST_ANTHROPIC_KEY") -> AnthropicAdapter:
        return AnthropicAdapter(model="claude-sonnet-4-20250514", api_key_env=api_key_env)

    def test_successful_suggestion(self):
        adapter = self._make_adapter()
        mock_response = _response(200, json=_make_anthropic_response("Alimentacao > Restaurantes"))
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_intake.llm.httpx.post", return_value=mock_response) as mock_post,
        ):
            answer = adapter.suggest_category("RESTAURANTE SABOR", 8000, CATALOG)

        assert answer == "Alimentacao > Restaurantes"

        mock_post.assert_called_once()
        call_kwargs = mock_post.call_args
        assert call_kwargs.kwargs["headers"]["x-api-key"] == "sk-ant-test-key"
        assert call_kwargs.kwargs["headers"]["anthropic-version"] == "2023-06-01"

        body = call_kwargs.kwargs["json"]
        assert body["model"] == "claude-sonnet-4-20250514"
        assert body["max_tokens"] == 100
        assert body["temperature"] == 0.3
        assert "Transferencia Interna" in body["system"]
        assert "RESTAURANTE SABOR" in body["messages"][0]["content"]

    def test_empty_catalog_makes_no_call(self):
        adapter = self._make_adapter()
        with patch("statement_intake.llm.httpx.post") as mock_post:
            assert adapter.suggest_category("X", 100, []) is None
        mock_post.assert_not_called()

    def test_missing_api_key_returns_none(self):
        adapter = self._make_adapter(api_key_env="NONEXISTENT_KEY_VAR")
        with (
            patch.dict("os.environ", {}, clear=True),
            patch("statement_intake.llm.httpx.post") as mock_post,
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None
        mock_post.assert_not_called()

    def test_auth_error_returns_none(self):
        adapter = self._make_adapter()
        mock_response = _response(
            401,
            json={"type": "error", "error": {"type": "authentication_error"}},
        )
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-bad-key"}),
            patch("statement_intake.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None

    def test_rate_limit_returns_none(self):
        adapter = self._make_adapter()
        mock_response = _response(429, json={"type": "error"})
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_intake.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None

    def test_timeout_returns_none(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch(
                "statement_intake.llm.httpx.post",
                side_effect=httpx.ReadTimeout("timed out"),
            ),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None

    def test_connection_error_returns_none(self):
        adapter = self._make_adapter()
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch(
                "statement_intake.llm.httpx.post",
                side_effect=httpx.ConnectError("refused"),
            ),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None

    def test_non_json_body_returns_none(self):
        adapter = self._make_adapter()
        mock_response = _response(200, text="not json")
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_intake.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None

    def test_no_text_blocks_returns_none(self):
        adapter = self._make_adapter()
        mock_response = _response(200, json={"content": []})
        with (
            patch.dict("os.environ", {"TEST_ANTHROPIC_KEY": "sk-ant-test-key"}),
            patch("statement_intake.llm.httpx.post", return_value=mock_response),
        ):
            assert adapter.suggest_category("X", 100, CATALOG) is None
