"""Participant health checks — ping each model before starting a chat."""

import asyncio
import logging

from groupchat.providers.base import InferenceClient

logger = logging.getLogger(__name__)

_PING_MESSAGES = [{"role": "user", "content": "Reply with the word OK only."}]
_PING_MAX_TOKENS = 5
_TIMEOUT_SEC = 15.0


async def _check_one(client: InferenceClient, participant_id: str) -> tuple[str, bool, str]:
    """Ping a single participant. Returns (participant_id, ok, error_message)."""
    try:
        await asyncio.wait_for(
            client.call(participant_id, _PING_MESSAGES, max_tokens=_PING_MAX_TOKENS),
            timeout=_TIMEOUT_SEC,
        )
        return participant_id, True, ""
    except TimeoutError:
        return participant_id, False, f"No reply within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", participant_id, exc)
        return participant_id, False, str(exc)


async def run_health_checks(
    client: InferenceClient,
    participant_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all participants in parallel.

    Returns:
        Dict mapping participant id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(client, pid) for pid in participant_ids))
    return {pid: (ok, err) for pid, ok, err in results}
