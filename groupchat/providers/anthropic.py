"""Anthropic Claude backend using anthropic SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator
from typing import Any

import anthropic as anthropic_sdk

from config.config_loader import BackendConfig
from groupchat.providers.base import ConfigurationFailure, InferenceClient, RemoteFailure, split_system

logger = logging.getLogger(__name__)

_LEADING_USER_TURN = "(conversation continues)"


def _merge_consecutive(turns: list[dict[str, str]]) -> list[dict[str, str]]:
    """Join back-to-back turns with the same role; several models often reply in a row."""
    merged: list[dict[str, str]] = []
    for turn in turns:
        if merged and merged[-1]["role"] == turn["role"]:
            merged[-1] = {"role": turn["role"], "content": f"{merged[-1]['content']}\n\n{turn['content']}"}
        else:
            merged.append(dict(turn))
    return merged


class AnthropicBackend(InferenceClient):
    """Anthropic Claude via the Messages API."""

    def __init__(self, config: BackendConfig) -> None:
        self._config = config
        self._client: anthropic_sdk.AsyncAnthropic | None = None

    def _get_client(self, participant_id: str) -> anthropic_sdk.AsyncAnthropic:
        if self._client is None:
            api_key = os.environ.get(self._config.api_key_env, "").strip()
            if not api_key:
                raise ConfigurationFailure(participant_id, f"Missing API key: {self._config.api_key_env}")
            self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)
        return self._client

    def _request(
        self, participant_id: str, messages: list[dict[str, str]], max_tokens: int | None
    ) -> dict[str, Any]:
        system, turns = split_system(messages)
        turns = _merge_consecutive(turns)
        # The Messages API requires the first turn to come from the user
        if turns and turns[0]["role"] == "assistant":
            turns.insert(0, {"role": "user", "content": _LEADING_USER_TURN})
        request: dict[str, Any] = {
            "model": participant_id.split("/", 1)[-1],
            "max_tokens": max_tokens or self._config.max_tokens,
            "messages": turns,
        }
        if system:
            request["system"] = system
        return request

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
                client.messages.create(**self._request(participant_id, messages, max_tokens)),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise RemoteFailure(participant_id, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise RemoteFailure(participant_id, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content or [] if b.type == "text"]
        if not text_blocks:
            raise RemoteFailure(participant_id, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("%s call via %s: %.2fs, %s tokens", participant_id, self._config.name, latency, token_count)
        return "\n".join(text_blocks)

    async def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        client = self._get_client(participant_id)
        start = time.monotonic()
        try:
            async with client.messages.stream(**self._request(participant_id, messages, None)) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as exc:
            raise RemoteFailure(participant_id, f"Stream failed: {exc}") from exc

        logger.info("%s stream via %s: %.2fs", participant_id, self._config.name, time.monotonic() - start)
