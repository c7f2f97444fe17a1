"""
OpenAI-compatible client for the LLM extraction strategy, configured from the environment (.env supported).
OPENROUTER_API_KEY takes precedence over OPENAI_API_KEY; LLM_MODEL overrides the provider's default model.
"""
from __future__ import annotations

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_OPENROUTER_MODEL = "openai/gpt-4o-mini"

_client: Optional["OpenAI"] = None


class Provider(NamedTuple):
    api_key: str
    base_url: Optional[str]
    default_model: str


def _provider() -> Optional[Provider]:
    if os.getenv("OPENROUTER_API_KEY"):
        return Provider(os.environ["OPENROUTER_API_KEY"], OPENROUTER_BASE_URL, DEFAULT_OPENROUTER_MODEL)
    if os.getenv("OPENAI_API_KEY"):
        return Provider(os.environ["OPENAI_API_KEY"], None, DEFAULT_MODEL)
    return None


def get_openai_client() -> Optional["OpenAI"]:
    """Shared client, or None without an API key. Built with retries disabled."""
    global _client
    if _client is None:
        provider = _provider()
        if provider is None:
            return None
        from openai import OpenAI
        _client = OpenAI(api_key=provider.api_key, base_url=provider.base_url, max_retries=0)
    return _client


def get_model_name() -> str:
    provider = _provider()
    return os.getenv("LLM_MODEL") or (provider.default_model if provider else DEFAULT_MODEL)


def has_api_key() -> bool:
    return _provider() is not None
