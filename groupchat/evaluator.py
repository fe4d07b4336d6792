"""Participation evaluation: ask a participant whether it wants to reply, privately."""

import json
import logging
from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config.config_loader import PolicyConfig, PromptsConfig
from groupchat.context import build_context
from groupchat.models import Reaction, Turn
from groupchat.policy import DEFAULT_POLICY
from groupchat.providers.base import InferenceClient

logger = logging.getLogger(__name__)

_DEBATE_NOTE = "Debate mode is ON: the user wants the models to discuss, so lean towards joining in."
_REGULAR_NOTE = "Debate mode is OFF: usually one or two replies are enough, so stay quiet unless you add something."


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class ReactionPayload(BaseModel):
    """The JSON object a participant returns from the evaluation prompt."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    interest: float
    agreement: float
    confidence: float
    response_pressure: float = Field(alias="responsePressure")
    reasoning: str | None = None

    @field_validator("interest", "confidence", "response_pressure")
    @classmethod
    def clamp_unit(cls, value: float) -> float:
        return _clamp(value, 0.0, 1.0)

    @field_validator("agreement")
    @classmethod
    def clamp_signed(cls, value: float) -> float:
        return _clamp(value, -1.0, 1.0)

    def to_reaction(self) -> Reaction:
        return Reaction(
            interest=self.interest,
            agreement=self.agreement,
            confidence=self.confidence,
            response_pressure=self.response_pressure,
            reasoning=self.reasoning,
        )


def _json_object_spans(text: str) -> Iterator[str]:
    """Yield every balanced {...} span in ``text`` in order of its opening brace.

    Braces inside JSON strings are skipped. Nested objects are yielded after
    the object that contains them.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)


def parse_reaction(raw: str) -> Reaction:
    """Validate the whole reply as JSON, falling back to the first valid embedded object.

    Raises:
        ValueError: If neither attempt yields a valid payload.
    """
    try:
        return ReactionPayload.model_validate_json(raw.strip()).to_reaction()
    except ValidationError:
        pass

    last_error: Exception | None = None
    for candidate in _json_object_spans(raw):
        try:
            return ReactionPayload.model_validate(json.loads(candidate)).to_reaction()
        except (json.JSONDecodeError, ValidationError) as exc:
            last_error = exc

    if last_error is None:
        raise ValueError("no JSON object in reply")
    raise ValueError(f"invalid reaction payload: {last_error}")


def fail_open_reaction(reason: str, policy: PolicyConfig = DEFAULT_POLICY) -> Reaction:
    """Reaction used when evaluation breaks, high enough to clear any threshold."""
    return Reaction(
        interest=0.5,
        agreement=0.0,
        confidence=0.5,
        response_pressure=policy.fail_open_pressure,
        reasoning=reason,
    )


def evaluation_messages(
    participant_id: str,
    history: list[Turn],
    candidate_message: str,
    debate_mode: bool,
    prompts: PromptsConfig,
) -> list[dict[str, str]]:
    instruction = prompts.evaluation.format(mode_note=_DEBATE_NOTE if debate_mode else _REGULAR_NOTE)
    return [
        {"role": "system", "content": instruction},
        *build_context(history, participant_id),
        {"role": "user", "content": candidate_message},
    ]


async def evaluate(
    client: InferenceClient,
    participant_id: str,
    history: list[Turn],
    candidate_message: str,
    debate_mode: bool,
    prompts: PromptsConfig,
    policy: PolicyConfig = DEFAULT_POLICY,
    max_tokens: int | None = None,
) -> Reaction:
    """Score one participant's urge to reply. Never raises.

    Any client error or unparseable reply yields the fail-open reaction so a
    malfunctioning participant still gets to respond instead of vanishing.
    """
    try:
        messages = evaluation_messages(participant_id, history, candidate_message, debate_mode, prompts)
        raw = await client.call(participant_id, messages, max_tokens=max_tokens)
    except Exception as exc:
        logger.warning("Evaluation call failed for %s: %s", participant_id, exc)
        return fail_open_reaction(f"Evaluation failed ({exc}); defaulting to respond", policy)

    try:
        reaction = parse_reaction(raw)
    except ValueError as exc:
        logger.warning("Unparseable evaluation from %s: %s", participant_id, exc)
        return fail_open_reaction(f"Could not parse evaluation ({exc}); defaulting to respond", policy)

    logger.debug(
        "%s reaction: interest=%.2f agreement=%.2f confidence=%.2f pressure=%.2f",
        participant_id,
        reaction.interest,
        reaction.agreement,
        reaction.confidence,
        reaction.response_pressure,
    )
    return reaction
