"""Response orchestration: evaluate every participant, then stream the chosen replies."""

import asyncio
import logging
from collections.abc import AsyncIterator

from config.config_loader import PolicyConfig, PromptsConfig
from groupchat.context import build_context, short_name
from groupchat.evaluator import evaluate
from groupchat.models import (
    ChunkEvent,
    DebugEvent,
    Decision,
    DoneEvent,
    ErrorEvent,
    ParticipationEvent,
    StartEvent,
    StreamEvent,
    Turn,
)
from groupchat.policy import DEFAULT_POLICY, is_broadcast, threshold
from groupchat.providers.base import InferenceClient, RemoteFailure

logger = logging.getLogger(__name__)

# (substrings in the raw error, explanation appended to the friendly message)
_ERROR_HINTS: list[tuple[tuple[str, ...], str]] = [
    (
        ("Provider returned error", "overloaded", "502", "503", "529"),
        "The model provider is experiencing issues. Try a different model.",
    ),
    (
        ("API key", "401", "authentication", "Unauthorized"),
        "API key issue detected.",
    ),
]

_BRANCH_END = object()

# Responders block once this many events are waiting for the consumer.
_QUEUE_MAXSIZE = 32


def friendly_error(participant_id: str, exc: BaseException) -> str:
    """Turn a raw failure into a short, participant-attributed explanation."""
    detail = (exc.detail if isinstance(exc, RemoteFailure) else str(exc)) or type(exc).__name__
    message = f"⚠️ {short_name(participant_id)} is currently unavailable."
    for patterns, hint in _ERROR_HINTS:
        if any(p in detail for p in patterns):
            return f"{message} {hint}"
    return f"{message} ({detail})"


def decide(
    participant_ids: list[str],
    pressures: list[float],
    reasonings: list[str | None],
    cutoff: float,
) -> list[Decision]:
    """RESPOND when pressure is strictly above the cutoff, SILENT otherwise."""
    return [
        Decision(
            participant_id=pid,
            display_name=short_name(pid),
            response_pressure=pressure,
            threshold=cutoff,
            outcome="RESPOND" if pressure > cutoff else "SILENT",
            reasoning=reasoning,
        )
        for pid, pressure, reasoning in zip(participant_ids, pressures, reasonings)
    ]


async def _respond(
    client: InferenceClient,
    participant_id: str,
    messages: list[dict[str, str]],
    queue: asyncio.Queue,
) -> None:
    """One responder branch: start, chunks, then exactly one of done/error."""
    await queue.put(StartEvent(participant_id))
    buffer: list[str] = []
    try:
        async for fragment in client.stream(participant_id, messages):
            buffer.append(fragment)
            await queue.put(ChunkEvent(participant_id, fragment))
    except Exception as exc:
        logger.warning("Generation failed for %s after %d chunks: %s", participant_id, len(buffer), exc)
        await queue.put(ErrorEvent(participant_id, friendly_error(participant_id, exc)))
    else:
        logger.info("%s replied (%d chars)", participant_id, sum(len(b) for b in buffer))
        await queue.put(DoneEvent(participant_id, "".join(buffer)))
    # Not sent on cancellation: the consumer has already stopped reading.
    await queue.put(_BRANCH_END)


async def orchestrate(
    user_message: str,
    history: list[Turn],
    participant_ids: list[str],
    debate_mode: bool,
    *,
    client: InferenceClient,
    prompts: PromptsConfig,
    policy: PolicyConfig = DEFAULT_POLICY,
    evaluation_max_tokens: int | None = None,
) -> AsyncIterator[StreamEvent]:
    """Run one invocation and yield its events as they happen.

    Phases: every participant is evaluated concurrently (join barrier), the
    responder set is chosen against the threshold, then every responder
    streams its reply concurrently. Events from different responders
    interleave in arrival order; each responder's own events stay ordered.

    The buffer between responders and the consumer is bounded, so a slow
    consumer holds the responders back. Closing the generator early cancels
    the in-flight responder tasks.

    Raises:
        ValueError: If there are no participants or the message is blank.
    """
    if not participant_ids:
        raise ValueError("At least one participant is required")
    if not user_message or not user_message.strip():
        raise ValueError("User message must not be empty")

    logger.info("Evaluating %d participants (debate_mode=%s)", len(participant_ids), debate_mode)
    reactions = await asyncio.gather(
        *(
            evaluate(
                client,
                pid,
                history,
                user_message,
                debate_mode,
                prompts,
                policy,
                max_tokens=evaluation_max_tokens,
            )
            for pid in participant_ids
        )
    )

    broadcast = is_broadcast(user_message)
    cutoff = threshold(debate_mode, broadcast, policy)
    decisions = decide(
        participant_ids,
        [r.response_pressure for r in reactions],
        [r.reasoning for r in reactions],
        cutoff,
    )
    for d in decisions:
        logger.debug("%s: pressure %.2f vs %.2f -> %s", d.participant_id, d.response_pressure, cutoff, d.outcome)

    responders = [d.participant_id for d in decisions if d.outcome == "RESPOND"]
    logger.info(
        "Selected %d/%d responders (threshold %.2f, broadcast=%s)",
        len(responders),
        len(participant_ids),
        cutoff,
        broadcast,
    )

    yield DebugEvent(decisions)
    yield ParticipationEvent(responding_count=len(responders), total_count=len(participant_ids), threshold=cutoff)

    if not responders:
        return

    system_prompt = prompts.debate if debate_mode else prompts.regular
    queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)
    tasks = [
        asyncio.create_task(
            _respond(
                client,
                pid,
                [
                    {"role": "system", "content": system_prompt},
                    *build_context(history, pid),
                    {"role": "user", "content": user_message},
                ],
                queue,
            ),
            name=f"respond:{pid}",
        )
        for pid in responders
    ]

    pending = len(tasks)
    try:
        while pending:
            event = await queue.get()
            if event is _BRANCH_END:
                pending -= 1
                continue
            yield event
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    logger.info("Invocation complete: %d responders finished", len(responders))
