"""Static per-vendor parameter legality and defaults.

The table is built once at import and never mutated. Changing a range means
shipping a new release.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .errors import UnsupportedVendorError
from .models import Capability, ParamRange

OPENAI = "openai"
OPENAI_RESPONSES = "openai-responses"
CLAUDE = "claude"
GEMINI = "gemini"
XAI = "xai"
QWEN = "qwen"
OLLAMA = "ollama"

_UNIT = ParamRange(minimum=0.0, maximum=1.0)
_TEMP_WIDE = ParamRange(minimum=0.0, maximum=2.0)
_PENALTY = ParamRange(minimum=-2.0, maximum=2.0)

_GPT_MODELS = ("gpt-5", "o3", "o3-mini", "gpt-4o", "gpt-4o-mini", "gpt-4-turbo")

_CAPABILITIES: dict[str, Capability] = {
    OPENAI: Capability(
        vendor_id=OPENAI,
        display_name="OpenAI",
        temperature=_TEMP_WIDE,
        max_output_tokens=ParamRange(minimum=1, maximum=4096),
        top_p=_UNIT,
        frequency_penalty=_PENALTY,
        presence_penalty=_PENALTY,
        default_base_url="https://api.openai.com/v1",
        default_model="gpt-4o",
        suggested_models=_GPT_MODELS,
        notes=("Temperature and top-p may be combined", "GPT-4o output is limited to 4K tokens"),
    ),
    OPENAI_RESPONSES: Capability(
        vendor_id=OPENAI_RESPONSES,
        display_name="OpenAI (Responses API)",
        temperature=_TEMP_WIDE,
        max_output_tokens=ParamRange(minimum=1, maximum=4096),
        top_p=_UNIT,
        supports_stop_sequences=False,
        default_base_url="https://api.openai.com/v1",
        default_model="gpt-4o",
        suggested_models=_GPT_MODELS,
        notes=("Supports chaining through previous_response_id", "Responses are stored for 30 days unless disabled"),
    ),
    CLAUDE: Capability(
        vendor_id=CLAUDE,
        display_name="Anthropic Claude",
        temperature=_UNIT,
        max_output_tokens=ParamRange(minimum=1, maximum=8192),
        top_p=_UNIT,
        exclusive_sampling=True,
        default_base_url="https://api.anthropic.com",
        default_model="claude-sonnet-4-20250514",
        suggested_models=(
            "claude-opus-4-1-20250805",
            "claude-opus-4-20250514",
            "claude-sonnet-4-20250514",
            "claude-3-7-sonnet-20250219",
            "claude-3-5-haiku-20241022",
        ),
        notes=("Tune temperature or top-p, not both", "max_tokens is required by the API"),
    ),
    GEMINI: Capability(
        vendor_id=GEMINI,
        display_name="Google Gemini",
        temperature=_TEMP_WIDE,
        max_output_tokens=ParamRange(minimum=1, maximum=65536),
        top_p=_UNIT,
        frequency_penalty=_PENALTY,
        presence_penalty=_PENALTY,
        default_base_url="https://generativelanguage.googleapis.com",
        default_model="gemini-2.5-pro",
        default_top_p=0.95,
        default_max_output_tokens=8192,
        suggested_models=(
            "gemini-2.5-pro",
            "gemini-2.5-flash",
            "gemini-2.5-flash-lite",
            "gemini-2.0-flash",
            "gemini-2.0-flash-lite",
        ),
        notes=("Recommended top-p is 0.95",),
    ),
    XAI: Capability(
        vendor_id=XAI,
        display_name="xAI Grok",
        temperature=_UNIT,
        max_output_tokens=ParamRange(minimum=1, maximum=4096),
        top_p=_UNIT,
        frequency_penalty=_PENALTY,
        presence_penalty=_PENALTY,
        default_base_url="https://api.x.ai/v1",
        default_model="grok-2-1212",
        suggested_models=("grok-4", "grok-3", "grok-2-1212", "grok-2-vision-1212"),
        notes=("Grok parameter ranges are conservative",),
    ),
    QWEN: Capability(
        vendor_id=QWEN,
        display_name="Alibaba Qwen",
        temperature=_TEMP_WIDE,
        max_output_tokens=ParamRange(minimum=1, maximum=8192),
        top_p=_UNIT,
        frequency_penalty=_PENALTY,
        presence_penalty=_PENALTY,
        default_base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
        default_model="qwen-max",
        suggested_models=("qwen-max", "qwen-plus", "qwen-turbo", "qwen2.5-coder"),
    ),
    OLLAMA: Capability(
        vendor_id=OLLAMA,
        display_name="Ollama",
        temperature=_TEMP_WIDE,
        max_output_tokens=ParamRange(minimum=1, maximum=65536),
        top_p=_UNIT,
        frequency_penalty=_PENALTY,
        presence_penalty=_PENALTY,
        requires_credential=False,
        default_base_url="http://localhost:11434/v1",
        default_model="llama3.3",
        suggested_models=("llama3.3", "llama3.2", "qwen2.5", "mistral-nemo", "phi4"),
        notes=("Local models, flexible parameter ranges",),
    ),
}

CAPABILITIES: Mapping[str, Capability] = MappingProxyType(_CAPABILITIES)

_RANGE_PARAMS = ("temperature", "max_output_tokens", "top_p", "frequency_penalty", "presence_penalty")


def registered_vendors() -> list[str]:
    return list(CAPABILITIES)


def is_registered(vendor_id: str) -> bool:
    return vendor_id in CAPABILITIES


def get_capability(vendor_id: str) -> Capability:
    try:
        return CAPABILITIES[vendor_id]
    except KeyError:
        raise UnsupportedVendorError(vendor_id) from None


def get_range(vendor_id: str, param_name: str) -> ParamRange | None:
    """Range for a numeric parameter, or None when the vendor does not accept it."""
    if param_name not in _RANGE_PARAMS:
        raise KeyError(f"Unknown parameter '{param_name}'")
    return getattr(get_capability(vendor_id), param_name)


def requires_credential(vendor_id: str) -> bool:
    return get_capability(vendor_id).requires_credential


def get_defaults(vendor_id: str) -> dict[str, Any]:
    """Default generation parameters used to pre-fill a new config."""
    cap = get_capability(vendor_id)
    return {
        "model_id": cap.default_model,
        "endpoint_override": cap.default_base_url,
        "temperature": cap.recommended_temperature,
        "top_p": cap.default_top_p,
        "max_output_tokens": cap.default_max_output_tokens,
    }
