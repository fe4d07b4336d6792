"""Pure dataclasses for the group chat orchestration engine. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant"]
Outcome = Literal["RESPOND", "SILENT"]


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str
    author: str | None = None          # participant id, assistant turns only
    timestamp: datetime | None = None


@dataclass
class Reaction:
    interest: float                    # [0, 1]
    agreement: float                   # [-1, 1]
    confidence: float                  # [0, 1]
    response_pressure: float           # [0, 1]
    reasoning: str | None = None


@dataclass
class Decision:
    participant_id: str
    display_name: str
    response_pressure: float
    threshold: float
    outcome: Outcome
    reasoning: str | None = None


@dataclass
class DebugEvent:
    decisions: list[Decision] = field(default_factory=list)
    type: str = field(default="debug", init=False)


@dataclass
class ParticipationEvent:
    responding_count: int
    total_count: int
    threshold: float
    type: str = field(default="participation", init=False)


@dataclass
class StartEvent:
    participant_id: str
    type: str = field(default="start", init=False)


@dataclass
class ChunkEvent:
    participant_id: str
    content: str
    type: str = field(default="chunk", init=False)


@dataclass
class DoneEvent:
    participant_id: str
    full_content: str
    type: str = field(default="done", init=False)


@dataclass
class ErrorEvent:
    participant_id: str
    error: str
    type: str = field(default="error", init=False)


StreamEvent = DebugEvent | ParticipationEvent | StartEvent | ChunkEvent | DoneEvent | ErrorEvent
