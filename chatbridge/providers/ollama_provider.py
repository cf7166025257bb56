"""Ollama provider for local, self-hosted models.

Chat goes through Ollama's OpenAI-compatible ``/v1`` endpoint. Reachability
checks and model management use the native API (``/api/tags``,
``/api/pull``) on the same host.
"""

from __future__ import annotations

import logging

from ..capabilities import OLLAMA
from ..models import ModelDescriptor, ServiceConfig
from ..retry import call_with_retries
from .openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


class OllamaProvider(OpenAICompatibleProvider):
    """Provider for an Ollama server.

    The server usually runs without authentication, so a missing credential
    is valid and replaced by a placeholder key.
    """

    vendor_id = OLLAMA
    placeholder_credential = "ollama"

    def native_url(self, config: ServiceConfig) -> str:
        """Server root without the OpenAI-compatible ``/v1`` suffix."""
        base = self.base_url(config)
        return base[: -len("/v1")] if base.endswith("/v1") else base

    def _headers(self, config: ServiceConfig) -> dict[str, str]:
        # Reverse proxies in front of Ollama sometimes require a bearer token
        if config.credential:
            return {"Authorization": f"Bearer {config.credential}"}
        return {}

    async def test_connection(self, config: ServiceConfig) -> bool:
        try:
            await self._request_json(
                "GET",
                f"{self.native_url(config)}/api/tags",
                headers=self._headers(config),
                timeout=self.settings.probe_timeout,
            )
            return True
        except Exception as e:
            logger.info("ollama connection test failed: %s", e)
            return False

    async def get_available_models(self, config: ServiceConfig) -> list[ModelDescriptor]:
        data = await call_with_retries(
            lambda: self._request_json(
                "GET", f"{self.native_url(config)}/api/tags", headers=self._headers(config)
            ),
            self.settings,
            "list models",
        )
        models = data.get("models") if isinstance(data, dict) else None
        return [
            ModelDescriptor(id=m["name"], display_name=m["name"])
            for m in models or []
            if isinstance(m, dict) and m.get("name")
        ]

    async def pull_model(self, model_name: str, config: ServiceConfig) -> bool:
        """Ask the server to download a model. Returns False on any failure."""
        try:
            await self._request_json(
                "POST",
                f"{self.native_url(config)}/api/pull",
                headers=self._headers(config),
                json={"model": model_name, "stream": False},
            )
            return True
        except Exception as e:
            logger.warning("ollama pull of %s failed: %s", model_name, e)
            return False
