"""Error taxonomy for the adapter layer."""

from __future__ import annotations

# Statuses treated as transient and retried with backoff
RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


class ChatBridgeError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(ChatBridgeError):
    """A config failed capability checks. Raised before any network call."""

    def __init__(self, vendor_id: str, errors: list[str]) -> None:
        self.vendor_id = vendor_id
        self.errors = list(errors)
        super().__init__(f"Invalid config for '{vendor_id}': " + "; ".join(self.errors))


class AdapterError(ChatBridgeError):
    """A vendor call failed: non-2xx status, malformed body or missing content.

    ``code`` and ``param`` carry the vendor's own error code and offending
    parameter name when the error body provides them.
    """

    def __init__(
        self,
        vendor_id: str,
        message: str,
        http_status: int | None = None,
        cause: BaseException | None = None,
        code: str | None = None,
        param: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.vendor_id = vendor_id
        self.message = message
        self.http_status = http_status
        self.cause = cause
        self.code = code
        self.param = param
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.http_status in RETRYABLE_STATUSES

    def __str__(self) -> str:
        status = f" (HTTP {self.http_status})" if self.http_status else ""
        return f"[{self.vendor_id}] {self.message}{status}"


class UnsupportedVendorError(ChatBridgeError):
    """No adapter is registered under the requested vendor id."""

    def __init__(self, vendor_id: str) -> None:
        self.vendor_id = vendor_id
        super().__init__(f"Unsupported vendor: '{vendor_id}'")


class UnsupportedOperationError(ChatBridgeError):
    """The resolved adapter does not implement the requested operation."""

    def __init__(self, vendor_id: str, operation: str) -> None:
        self.vendor_id = vendor_id
        self.operation = operation
        super().__init__(f"'{vendor_id}' does not support {operation}")
