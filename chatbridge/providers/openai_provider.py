"""OpenAI provider (GPT models, Chat Completions API)."""

from __future__ import annotations

from ..capabilities import OPENAI
from .openai_compat import OpenAICompatibleProvider


class OpenAIProvider(OpenAICompatibleProvider):
    """Provider for OpenAI's stateless Chat Completions endpoint.

    Sends ``max_completion_tokens`` (the field reasoning models require) and
    falls back to the model's default temperature when a reasoning-tier model
    rejects a custom one.
    """

    vendor_id = OPENAI
    model_filter = "gpt"
    max_tokens_field = "max_completion_tokens"
    retry_without_temperature = True
