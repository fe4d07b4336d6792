"""Build the role-tagged message list a participant sees for its next call."""

from groupchat.models import Turn

_PLACEHOLDER_NAME = "AI"


def short_name(participant_id: str | None) -> str:
    """Strip the vendor namespace: "openai/gpt-4o" -> "gpt-4o"."""
    if not participant_id:
        return _PLACEHOLDER_NAME
    return participant_id.rsplit("/", 1)[-1] or participant_id


def build_context(history: list[Turn], participant_id: str) -> list[dict[str, str]]:
    """Return every turn of ``history`` in order, with assistant turns labeled by speaker.

    Group chat semantics: all participants see the same transcript, so the
    result does not depend on ``participant_id``.
    """
    context: list[dict[str, str]] = []
    for turn in history:
        if turn.role == "user":
            context.append({"role": "user", "content": turn.content})
        else:
            context.append({"role": "assistant", "content": f"[{short_name(turn.author)}]: {turn.content}"})
    return context
