"""Runtime tuning for adapter timeouts and retries."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class AdapterSettings(BaseModel):
    """Timeouts and retry policy shared by all adapters.

    Environment variables:
        CHATBRIDGE_STALL_TIMEOUT: Seconds without a stream chunk before the
            stream is cancelled (default: 30)
        CHATBRIDGE_REQUEST_TIMEOUT: Per-request HTTP timeout in seconds (default: 120)
        CHATBRIDGE_MAX_RETRIES: Retries for 429/502/503/504 responses (default: 2)
        CHATBRIDGE_BACKOFF_BASE: First backoff delay in seconds (default: 0.5)
        CHATBRIDGE_BACKOFF_MAX: Upper bound for any single delay (default: 8)
    """

    stall_timeout: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=120.0, gt=0)
    probe_timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base: float = Field(default=0.5, ge=0)
    backoff_max: float = Field(default=8.0, ge=0)

    @classmethod
    def from_env(cls) -> AdapterSettings:
        return cls(
            stall_timeout=float(os.environ.get("CHATBRIDGE_STALL_TIMEOUT", "30")),
            request_timeout=float(os.environ.get("CHATBRIDGE_REQUEST_TIMEOUT", "120")),
            max_retries=int(os.environ.get("CHATBRIDGE_MAX_RETRIES", "2")),
            backoff_base=float(os.environ.get("CHATBRIDGE_BACKOFF_BASE", "0.5")),
            backoff_max=float(os.environ.get("CHATBRIDGE_BACKOFF_MAX", "8")),
        )
