"""Gemini backend using google-genai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from config.config_loader import BackendConfig
from groupchat.providers.base import ConfigurationFailure, InferenceClient, RemoteFailure, split_system

logger = logging.getLogger(__name__)


def _to_contents(turns: list[dict[str, str]]) -> list[genai_types.Content]:
    return [
        genai_types.Content(
            role="model" if t["role"] == "assistant" else "user",
            parts=[genai_types.Part(text=t["content"])],
        )
        for t in turns
    ]


class GeminiBackend(InferenceClient):
    """Google Gemini via google-genai SDK."""

    def __init__(self, config: BackendConfig) -> None:
        self._config = config
        self._client: genai.Client | None = None

    def _get_client(self, participant_id: str) -> genai.Client:
        if self._client is None:
            api_key = os.environ.get(self._config.api_key_env, "").strip()
            if not api_key:
                raise ConfigurationFailure(participant_id, f"Missing API key: {self._config.api_key_env}")
            self._client = genai.Client(api_key=api_key)
        return self._client

    def _generation_config(self, system: str, max_tokens: int | None) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            max_output_tokens=max_tokens or self._config.max_tokens,
            system_instruction=system or None,
        )

    async def call(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> str:
        client = self._get_client(participant_id)
        system, turns = split_system(messages)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=participant_id.split("/", 1)[-1],
                    contents=_to_contents(turns),
                    config=self._generation_config(system, max_tokens),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise RemoteFailure(participant_id, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise RemoteFailure(participant_id, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise RemoteFailure(participant_id, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("%s call via %s: %.2fs, %s tokens", participant_id, self._config.name, latency, token_count)
        return response.text

    async def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        client = self._get_client(participant_id)
        system, turns = split_system(messages)
        start = time.monotonic()
        try:
            chunks = await client.aio.models.generate_content_stream(
                model=participant_id.split("/", 1)[-1],
                contents=_to_contents(turns),
                config=self._generation_config(system, None),
            )
            async for chunk in chunks:
                if chunk.text:
                    yield chunk.text
        except Exception as exc:
            raise RemoteFailure(participant_id, f"Stream failed: {exc}") from exc

        logger.info("%s stream via %s: %.2fs", participant_id, self._config.name, time.monotonic() - start)
