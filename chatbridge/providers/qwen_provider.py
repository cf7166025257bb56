"""Alibaba Qwen provider.

Uses DashScope's OpenAI-compatible mode at
https://dashscope.aliyuncs.com/compatible-mode/v1.
"""

from __future__ import annotations

from ..capabilities import QWEN
from .openai_compat import OpenAICompatibleProvider


class QwenProvider(OpenAICompatibleProvider):
    """Provider for Qwen models via DashScope compatible mode."""

    vendor_id = QWEN
    model_filter = "qwen"
