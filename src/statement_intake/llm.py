"""LLM adapter interface and Anthropic implementation.

Defines the LLMAdapter protocol used by the generative tier of the
classification cascade, plus two implementations:
- AnthropicAdapter: asks the Anthropic Messages API via httpx to pick one
  catalog entry for a single transaction.
- NullAdapter: no-op adapter that never answers (for --no-llm mode).

This module depends only on the standard library and httpx. It has no
internal imports from statement_intake -- the categorizer passes plain
strings, not model objects, to keep the boundary clean.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


class LLMAdapter(Protocol):
    """Protocol for LLM-based category suggestions.

    Implementations receive one transaction and the rendered category
    catalog and return the raw answer line. On any failure they return
    None rather than raising.
    """

    def suggest_category(
        self,
        description: str,
        amount_cents: int,
        catalog: list[str],
    ) -> str | None:
        """Ask the LLM which catalog entry fits the transaction.

        Args:
            description: Transaction description.
            amount_cents: Absolute amount in cents.
            catalog: Rendered category names (``name`` or
                ``name > subcategory``).

        Returns:
            The answer text, expected to equal one catalog entry, or None.
        """
        ...


def format_amount(amount_cents: int) -> str:
    """Render cents as ``R$ 1234,56``."""
    return f"R$ {abs(amount_cents) / 100:.2f}".replace(".", ",")


def _build_system_prompt(catalog: list[str]) -> str:
    """System instruction embedding the category catalog."""
    catalog_text = "\n".join(f"- {entry}" for entry in catalog)
    return (
        "You are a financial assistant that classifies bank transactions.\n"
        "\n"
        "## Categories\n"
        f"{catalog_text}\n"
        "\n"
        "Answer with exactly one category name from the list above, written\n"
        "exactly as it appears, with no explanation."
    )


def _build_user_prompt(description: str, amount_cents: int) -> str:
    """User instruction with the transaction description and amount."""
    return (
        f'Description: "{description}"\n'
        f"Amount: {format_amount(amount_cents)}\n"
        "\n"
        "Which category fits best?"
    )


def _parse_response(text: str) -> str | None:
    """Return the first non-empty line of the answer, unquoted.

    The model sometimes prefixes the list bullet or wraps the name in
    quotes; both are stripped.
    """
    for line in text.splitlines():
        answer = line.strip().lstrip("-").strip().strip('"').strip()
        if answer:
            return answer
    return None


class AnthropicAdapter:
    """LLM adapter that calls the Anthropic Messages API via httpx.

    Reads the API key from the environment variable named by
    ``api_key_env``. Sends one request per transaction with the catalog in
    the system prompt and returns the first line of the text reply.

    On any failure (missing API key, network error, auth error, rate
    limit, unparseable response), returns None. The cascade treats this as
    a tier failure and falls through to manual review.

    Args:
        model: The Anthropic model identifier.
        api_key_env: Name of the environment variable containing the API key.
        max_tokens: Maximum tokens in the reply. Default: 100.
        timeout: HTTP request timeout in seconds. Default: 30.
    """

    def __init__(
        self,
        model: str,
        api_key_env: str,
        max_tokens: int = 100,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.timeout = timeout

    def suggest_category(
        self,
        description: str,
        amount_cents: int,
        catalog: list[str],
    ) -> str | None:
        """Ask Anthropic to pick a catalog entry for one transaction."""
        if not catalog:
            return None

        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            logger.warning(
                "LLM API key not found in environment variable '%s'",
                self.api_key_env,
            )
            return None

        request_body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": 0.3,
            "system": _build_system_prompt(catalog),
            "messages": [
                {
                    "role": "user",
                    "content": _build_user_prompt(description, amount_cents),
                }
            ],
        }

        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

        try:
            response = httpx.post(
                ANTHROPIC_API_URL,
                json=request_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("LLM request timed out")
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "LLM API returned HTTP %d: %s",
                exc.response.status_code,
                exc.response.text[:200],
            )
            return None
        except httpx.HTTPError as exc:
            logger.warning("LLM request failed: %s", exc)
            return None

        try:
            body = response.json()
            text_parts = [
                block["text"]
                for block in body.get("content", [])
                if block.get("type") == "text"
            ]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Failed to extract text from LLM response: %s", exc)
            return None

        return _parse_response("\n".join(text_parts))


class NullAdapter:
    """No-op LLM adapter for --no-llm mode.

    Used when LLM categorization is disabled via the --no-llm flag or when
    llm_provider is set to "none" in config.
    """

    def suggest_category(
        self,
        description: str,
        amount_cents: int,
        catalog: list[str],
    ) -> str | None:
        return None
