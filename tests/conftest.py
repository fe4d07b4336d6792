"""Shared pytest fixtures."""

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from config.config_loader import AppConfig, BackendConfig, DefaultsConfig, PolicyConfig, PromptsConfig
from groupchat.models import Turn
from groupchat.providers.base import InferenceClient


def reaction_json(pressure: float, reasoning: str = "test") -> str:
    return json.dumps({
        "interest": 0.5,
        "agreement": 0.0,
        "confidence": 0.5,
        "responsePressure": pressure,
        "reasoning": reasoning,
    })


class FakeClient(InferenceClient):
    """Scripted InferenceClient test double.

    ``replies`` maps participant id -> evaluation reply text, or an exception
    to raise from ``call``. ``fragments`` maps participant id -> the fragments
    ``stream`` yields; an exception in the list is raised at that point.
    ``call_delays`` holds a participant's evaluation back before it answers.
    ``log`` records ("call" | "stream", participant id) in the order they happened.
    """

    def __init__(
        self,
        replies: dict[str, str | Exception] | None = None,
        fragments: dict[str, list[str | Exception]] | None = None,
        fragment_delay: float = 0.0,
        call_delays: dict[str, float] | None = None,
    ) -> None:
        self.replies = replies or {}
        self.fragments = fragments or {}
        self.fragment_delay = fragment_delay
        self.call_delays = call_delays or {}
        self.calls: list[tuple[str, list[dict[str, str]]]] = []
        self.streams: list[tuple[str, list[dict[str, str]]]] = []
        self.log: list[tuple[str, str]] = []
        self.yielded: dict[str, int] = {}

    async def call(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> str:
        await asyncio.sleep(self.call_delays.get(participant_id, 0.0))
        self.calls.append((participant_id, messages))
        self.log.append(("call", participant_id))
        reply = self.replies.get(participant_id, reaction_json(0.9))
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        self.streams.append((participant_id, messages))
        self.log.append(("stream", participant_id))
        for item in self.fragments.get(participant_id, [f"hello from {participant_id}"]):
            await asyncio.sleep(self.fragment_delay)
            if isinstance(item, Exception):
                raise item
            self.yielded[participant_id] = self.yielded.get(participant_id, 0) + 1
            yield item


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        regular="REGULAR PROMPT",
        debate="DEBATE PROMPT",
        evaluation="Decide whether to reply. {mode_note}\nAnswer as {{\"responsePressure\": 0.5}}",
    )


@pytest.fixture
def sample_policy_config() -> PolicyConfig:
    return PolicyConfig()


@pytest.fixture
def sample_backend_config() -> BackendConfig:
    return BackendConfig(
        name="test_backend",
        sdk="openai",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
    )


@pytest.fixture
def sample_app_config(sample_prompts_config: PromptsConfig) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            participants=["openai/gpt-4o", "anthropic/claude-3.5-sonnet"],
            default_backend="openrouter",
        ),
        backends={
            "openrouter": BackendConfig(
                name="openrouter",
                sdk="openai",
                api_key_env="OPENROUTER_API_KEY",
                timeout_sec=60,
                max_tokens=2048,
                base_url="https://openrouter.ai/api/v1",
                namespaced_models=True,
            ),
            "anthropic": BackendConfig(
                name="anthropic",
                sdk="anthropic",
                api_key_env="ANTHROPIC_API_KEY",
                timeout_sec=60,
                max_tokens=2048,
            ),
            "gemini": BackendConfig(
                name="gemini",
                sdk="gemini",
                api_key_env="GEMINI_API_KEY",
                timeout_sec=60,
                max_tokens=2048,
            ),
        },
        prompts=sample_prompts_config,
        routes={"anthropic": "anthropic", "google": "gemini"},
    )


@pytest.fixture
def sample_history() -> list[Turn]:
    return [
        Turn("user", "hi"),
        Turn("assistant", "hey", author="openai/gpt-4o"),
    ]


@pytest.fixture
def history_file(tmp_path: Path) -> Path:
    path = tmp_path / "chat.json"
    path.write_text(
        json.dumps([
            {"role": "user", "content": "What's 2+2?", "timestamp": "2024-05-01T10:00:00"},
            {"role": "assistant", "content": "4", "modelId": "openai/gpt-4o"},
        ]),
        encoding="utf-8",
    )
    return path