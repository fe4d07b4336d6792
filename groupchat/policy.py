"""Response threshold policy and broadcast-mention detection."""

import re

from config.config_loader import PolicyConfig

DEFAULT_POLICY = PolicyConfig()

BROADCAST_MARKER = "@everyone"
_BROADCAST_NAMES = {"everyone", "all"}

# "@name" up to the next whitespace or end of text; names may contain dots and dashes.
_MENTION_RE = re.compile(r"(?<![\w@])@([\w.\-]+?)(?=\s|$)")


def threshold(debate_mode: bool, is_broadcast: bool, policy: PolicyConfig = DEFAULT_POLICY) -> float:
    """Response-pressure cutoff for one invocation, clamped to the policy bounds."""
    value = policy.base_threshold
    if debate_mode:
        value -= policy.debate_discount
    if is_broadcast:
        value -= policy.broadcast_discount
    value = min(policy.max_threshold, max(policy.min_threshold, value))
    return round(value, 2)


def parse_mentions(message: str) -> list[str]:
    """Return the names of all "@name" mentions in order of appearance."""
    return _MENTION_RE.findall(message)


def is_broadcast(message: str) -> bool:
    """True when the message addresses every participant.

    Two independent checks: the literal marker anywhere in the text, and a
    parsed mention whose name is an all-participants alias.
    """
    if BROADCAST_MARKER in message:
        return True
    return any(name.lower() in _BROADCAST_NAMES for name in parse_mentions(message))
