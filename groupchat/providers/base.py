"""Abstract inference client and the uniform failure signal for remote calls."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class RemoteFailure(Exception):
    """Raised when a call to a text-generation endpoint fails."""

    def __init__(self, participant_id: str, detail: str) -> None:
        self.participant_id = participant_id
        self.detail = detail
        super().__init__(f"[{participant_id}] {detail}")


class ConfigurationFailure(RemoteFailure):
    """Raised when a backend cannot be called at all (missing API key, bad route)."""


def split_system(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    """Separate system messages (joined) from the conversational turns."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    turns = [m for m in messages if m["role"] != "system"]
    return system, turns


class InferenceClient(ABC):
    """Issues one request/response or request/stream call per participant."""

    @abstractmethod
    async def call(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
    ) -> str:
        """Return the full generated text for ``messages``.

        Args:
            participant_id: Namespaced model id, e.g. "openai/gpt-4o".
            messages: Role-tagged turns, ``{"role": ..., "content": ...}``.
            max_tokens: Optional cap overriding the backend default.

        Raises:
            RemoteFailure: On transport, provider or configuration error.
        """
        ...

    @abstractmethod
    def stream(
        self,
        participant_id: str,
        messages: list[dict[str, str]],
    ) -> AsyncIterator[str]:
        """Yield text fragments as they arrive; finishes after the last one.

        Raises:
            RemoteFailure: Possibly after some fragments were already yielded.
        """
        ...
