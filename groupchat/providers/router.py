"""Route each participant to the backend that serves its vendor namespace."""

import logging
from collections.abc import AsyncIterator

from config.config_loader import AppConfig
from groupchat.providers.anthropic import AnthropicBackend
from groupchat.providers.base import ConfigurationFailure, InferenceClient
from groupchat.providers.gemini import GeminiBackend
from groupchat.providers.openai_compat import OpenAICompatBackend

logger = logging.getLogger(__name__)

BACKEND_CLASSES: dict[str, type[InferenceClient]] = {
    "openai": OpenAICompatBackend,
    "anthropic": AnthropicBackend,
    "gemini": GeminiBackend,
}


def vendor_of(participant_id: str) -> str:
    """Return the namespace prefix of "vendor/model", or "" when there is none."""
    if "/" not in participant_id:
        return ""
    return participant_id.split("/", 1)[0]


class ProviderRouter(InferenceClient):
    """InferenceClient that dispatches by vendor prefix, defaulting to OpenRouter.

    Backends are instantiated on first use and reused for the router's lifetime.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._backends: dict[str, InferenceClient] = {}

    def backend_name(self, participant_id: str) -> str:
        return self._config.routes.get(vendor_of(participant_id), self._config.defaults.default_backend)

    def backend_for(self, participant_id: str) -> InferenceClient:
        name = self.backend_name(participant_id)
        if name in self._backends:
            return self._backends[name]

        backend_cfg = self._config.backends.get(name)
        if backend_cfg is None:
            raise ConfigurationFailure(participant_id, f"No backend configured named '{name}'")
        backend_cls = BACKEND_CLASSES.get(backend_cfg.sdk)
        if backend_cls is None:
            raise ConfigurationFailure(participant_id, f"Unknown sdk '{backend_cfg.sdk}' for backend '{name}'")

        logger.debug("Routing %s to backend %s (%s)", participant_id, name, backend_cfg.sdk)
        backend = backend_cls(backend_cfg)
        self._backends[name] = backend
        return backend

    async def call(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> str:
        return await self.backend_for(participant_id).call(participant_id, messages, max_tokens=max_tokens)

    async def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        async for fragment in self.backend_for(participant_id).stream(participant_id, messages):
            yield fragment
