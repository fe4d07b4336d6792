"""Server-Sent-Events framing for orchestration events."""

import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from groupchat.models import (
    ChunkEvent,
    DebugEvent,
    Decision,
    DoneEvent,
    ErrorEvent,
    ParticipationEvent,
    StartEvent,
    StreamEvent,
)

DONE_FRAME = "data: [DONE]\n\n"


def _decision_payload(decision: Decision) -> dict[str, Any]:
    return {
        "modelId": decision.participant_id,
        "modelName": decision.display_name,
        "responsePressure": decision.response_pressure,
        "threshold": decision.threshold,
        "decision": decision.outcome,
        "reasoning": decision.reasoning,
    }


def event_payload(event: StreamEvent) -> dict[str, Any]:
    """Client-facing JSON object for one event (camelCase keys)."""
    if isinstance(event, DebugEvent):
        return {"type": event.type, "decisions": [_decision_payload(d) for d in event.decisions]}
    if isinstance(event, ParticipationEvent):
        return {
            "type": event.type,
            "respondingCount": event.responding_count,
            "totalCount": event.total_count,
            "threshold": event.threshold,
        }
    if isinstance(event, StartEvent):
        return {"type": event.type, "modelId": event.participant_id}
    if isinstance(event, ChunkEvent):
        return {"type": event.type, "modelId": event.participant_id, "content": event.content}
    if isinstance(event, DoneEvent):
        return {"type": event.type, "modelId": event.participant_id, "fullContent": event.full_content}
    if isinstance(event, ErrorEvent):
        return {"type": event.type, "modelId": event.participant_id, "error": event.error}
    raise TypeError(f"Unknown stream event: {event!r}")


def encode_event(event: StreamEvent) -> str:
    return f"data: {json.dumps(event_payload(event), ensure_ascii=False)}\n\n"


async def stream_frames(events: AsyncIterable[StreamEvent]) -> AsyncIterator[str]:
    """Frame each event as soon as it arrives, then the [DONE] sentinel."""
    async for event in events:
        yield encode_event(event)
    yield DONE_FRAME
