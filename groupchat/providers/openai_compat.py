"""OpenAI-compatible backend (OpenRouter, OpenAI, xAI) using openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from config.config_loader import BackendConfig
from groupchat.providers.base import ConfigurationFailure, InferenceClient, RemoteFailure

logger = logging.getLogger(__name__)


class OpenAICompatBackend(InferenceClient):
    """Chat completions against any OpenAI-compatible endpoint."""

    def __init__(self, config: BackendConfig) -> None:
        self._config = config
        self._client: AsyncOpenAI | None = None

    def _get_client(self, participant_id: str) -> AsyncOpenAI:
        if self._client is None:
            api_key = os.environ.get(self._config.api_key_env, "").strip()
            if not api_key:
                raise ConfigurationFailure(participant_id, f"Missing API key: {self._config.api_key_env}")
            self._client = AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
        return self._client

    def _model(self, participant_id: str) -> str:
        if self._config.namespaced_models:
            return participant_id
        return participant_id.split("/", 1)[-1]

    async def call(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> str:
        client = self._get_client(participant_id)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self._model(participant_id),
                    messages=messages,
                    max_tokens=max_tokens or self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise RemoteFailure(participant_id, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise RemoteFailure(participant_id, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise RemoteFailure(participant_id, "Empty response content")

        logger.info(
            "%s call via %s: %.2fs, %s tokens",
            participant_id,
            self._config.name,
            latency,
            response.usage.total_tokens if response.usage else None,
        )
        return choice.message.content

    async def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        client = self._get_client(participant_id)
        start = time.monotonic()
        try:
            response = await client.chat.completions.create(
                model=self._model(participant_id),
                messages=messages,
                max_tokens=self._config.max_tokens,
                stream=True,
                timeout=self._config.timeout_sec,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                fragment = chunk.choices[0].delta.content
                if fragment:
                    yield fragment
        except Exception as exc:
            raise RemoteFailure(participant_id, f"Stream failed: {exc}") from exc

        logger.info("%s stream via %s: %.2fs", participant_id, self._config.name, time.monotonic() - start)
