"""Pre-dispatch validation of a ServiceConfig against the capability registry."""

from __future__ import annotations

from . import capabilities
from .models import EXT_USE_STATEFUL_API, Capability, ServiceConfig, ValidationResult

_LABELS = {
    "temperature": "Temperature",
    "max_output_tokens": "Max output tokens",
    "top_p": "Top-p",
    "frequency_penalty": "Frequency penalty",
    "presence_penalty": "Presence penalty",
}


def _routed_stateful(config: ServiceConfig, vendor_id: str) -> bool:
    """An openai config switched to the Responses API by use_stateful_api."""
    return (
        config.vendor_id == capabilities.OPENAI
        and vendor_id == capabilities.OPENAI_RESPONSES
        and bool(config.extension(EXT_USE_STATEFUL_API))
    )


class ConfigValidator:
    """Checks a config and reports every violated rule in one pass."""

    def validate(self, vendor_id: str, config: ServiceConfig) -> ValidationResult:
        if not capabilities.is_registered(vendor_id):
            return ValidationResult(valid=False, errors=[f"Unsupported vendor: '{vendor_id}'"])

        cap = capabilities.get_capability(vendor_id)
        errors: list[str] = []

        if config.vendor_id is not None and config.vendor_id != vendor_id and not _routed_stateful(config, vendor_id):
            errors.append(f"Config is for '{config.vendor_id}', not '{vendor_id}'")
        if not config.model_id:
            errors.append("Model id must not be empty")
        if cap.requires_credential and not config.credential:
            errors.append(f"{cap.display_name} requires an API key")

        errors.extend(self._check_ranges(cap, config))

        if config.stop_sequences and not cap.supports_stop_sequences:
            errors.append(f"{cap.display_name} does not accept stop sequences")

        errors.extend(self._check_cross_rules(cap, config))
        return ValidationResult(valid=not errors, errors=errors)

    def _check_ranges(self, cap: Capability, config: ServiceConfig) -> list[str]:
        errors = []
        for name, label in _LABELS.items():
            value = getattr(config, name)
            if value is None:
                continue
            allowed = getattr(cap, name)
            if allowed is None:
                errors.append(f"{label} is not supported by {cap.display_name}")
            elif not allowed.contains(value):
                errors.append(f"{cap.display_name} {label} must be within {allowed}, got {value:g}")
        return errors

    def _check_cross_rules(self, cap: Capability, config: ServiceConfig) -> list[str]:
        if not cap.exclusive_sampling:
            return []
        if (
            config.temperature is not None
            and config.top_p is not None
            and config.temperature != cap.recommended_temperature
            and config.top_p != cap.default_top_p
        ):
            return [f"{cap.display_name} does not allow tuning both temperature and top-p; change only one"]
        return []


_default_validator = ConfigValidator()


def validate(vendor_id: str, config: ServiceConfig) -> ValidationResult:
    """Validate with the shared stateless validator."""
    return _default_validator.validate(vendor_id, config)
