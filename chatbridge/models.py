"""Core data models for the chat adapter layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# Known ServiceConfig.extensions keys
EXT_USE_STATEFUL_API = "use_stateful_api"
EXT_PERSIST_RESPONSE = "persist_response"
EXT_PREVIOUS_RESPONSE_ID = "previous_response_id"


class Role(str, Enum):
    """Speaker of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One turn of conversation history."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class TokenUsage(BaseModel):
    """Token accounting normalized across vendors."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
    ) -> TokenUsage:
        """Build usage from vendor counts, deriving the total when it is missing."""
        prompt = prompt_tokens or 0
        completion = completion_tokens or 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total_tokens if total_tokens is not None else prompt + completion,
        )


class ServiceConfig(BaseModel):
    """Per-request vendor configuration supplied by the caller.

    Optional generation parameters left as None are never sent to the
    vendor, so the vendor's own default applies.
    """

    vendor_id: Optional[str] = None
    credential: str = Field(default="", repr=False)
    endpoint_override: Optional[str] = None
    model_id: str = ""
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[list[str]] = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    def extension(self, name: str, default: Any = None) -> Any:
        """Read a vendor-specific extension value."""
        return self.extensions.get(name, default)


class ChatResult(BaseModel):
    """Normalized result of a unary chat call."""

    model_config = ConfigDict(frozen=True)

    text: str
    vendor_id: str
    model_id: str
    usage: Optional[TokenUsage] = None
    response_handle: Optional[str] = None  # stateful vendors only
    created_at: Optional[int] = None


class StreamChunk(BaseModel):
    """One increment of a streamed reply.

    Exactly one chunk per stream has is_final=True, and it is always the last.
    """

    model_config = ConfigDict(frozen=True)

    text_delta: str = ""
    is_final: bool = False
    vendor_id: str
    model_id: str
    error: Optional[str] = None  # set on the terminal chunk when the stream broke


class ModelDescriptor(BaseModel):
    """A model offered by a vendor."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str


class ParamRange(BaseModel):
    """Inclusive numeric range accepted by a vendor."""

    model_config = ConfigDict(frozen=True)

    minimum: float
    maximum: float

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def __str__(self) -> str:
        return f"{self.minimum:g}-{self.maximum:g}"


class Capability(BaseModel):
    """Static parameter legality and defaults for one vendor.

    A range of None means the vendor does not accept that parameter.
    """

    model_config = ConfigDict(frozen=True)

    vendor_id: str
    display_name: str
    temperature: ParamRange
    max_output_tokens: ParamRange
    top_p: ParamRange
    frequency_penalty: Optional[ParamRange] = None
    presence_penalty: Optional[ParamRange] = None
    requires_credential: bool = True
    supports_stop_sequences: bool = True
    exclusive_sampling: bool = False  # temperature and top_p should not both be tuned
    default_base_url: str
    default_model: str
    recommended_temperature: float = 0.7
    default_top_p: float = 1.0
    default_max_output_tokens: int = 4000
    suggested_models: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()


class ValidationResult(BaseModel):
    """Outcome of checking a config against the capability registry."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
