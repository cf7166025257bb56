"""xAI provider (Grok models).

Uses the OpenAI-compatible API at https://api.x.ai/v1.
"""

from __future__ import annotations

from ..capabilities import XAI
from .openai_compat import OpenAICompatibleProvider


class XAIProvider(OpenAICompatibleProvider):
    """Provider for xAI Grok via the OpenAI-compatible API."""

    vendor_id = XAI
    model_filter = "grok"
