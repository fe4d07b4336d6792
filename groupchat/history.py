"""Load a conversation snapshot from a JSON file."""

import json
from datetime import datetime
from pathlib import Path

from groupchat.models import Turn


def turn_from_dict(raw: dict) -> Turn:
    """Accepts both ``author`` and the web client's ``modelId`` key.

    Raises:
        ValueError: On an unknown role or missing content.
    """
    role = raw.get("role")
    if role not in ("user", "assistant"):
        raise ValueError(f"Unknown role: {role!r}")
    if "content" not in raw:
        raise ValueError("Turn has no content")
    timestamp = raw.get("timestamp")
    return Turn(
        role=role,
        content=str(raw["content"]),
        author=raw.get("author") or raw.get("modelId"),
        timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
    )


def load_history(path: Path) -> list[Turn]:
    """Read a JSON list of turns (or ``{"messages": [...]}``), oldest first."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("messages", [])
    return [turn_from_dict(item) for item in raw]
