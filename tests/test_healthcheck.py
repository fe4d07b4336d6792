"""Unit tests for groupchat/healthcheck.py — no real API calls."""

import asyncio

from groupchat.healthcheck import run_health_checks
from groupchat.providers.base import RemoteFailure
from tests.conftest import FakeClient


async def test_all_participants_pass():
    client = FakeClient(replies={"a/one": "OK", "b/two": "OK"})

    results = await run_health_checks(client, ["a/one", "b/two"])

    assert results["a/one"] == (True, "")
    assert results["b/two"] == (True, "")


async def test_one_participant_fails():
    client = FakeClient(replies={"a/one": "OK", "x-ai/grok": RemoteFailure("x-ai/grok", "403 Forbidden")})

    results = await run_health_checks(client, ["a/one", "x-ai/grok"])

    assert results["a/one"] == (True, "")
    ok, err = results["x-ai/grok"]
    assert ok is False
    assert "403" in err


async def test_ping_is_small():
    client = FakeClient(replies={"a/one": "OK"})
    await run_health_checks(client, ["a/one"])

    _, messages = client.calls[0]
    assert messages == [{"role": "user", "content": "Reply with the word OK only."}]


async def test_empty_participants():
    assert await run_health_checks(FakeClient(), []) == {}


async def test_timeout_counts_as_failure():
    """A participant that hangs past the timeout is marked as failed."""
    import groupchat.healthcheck as hc

    class HangingClient(FakeClient):
        async def call(self, participant_id, messages, *, max_tokens=None):
            await asyncio.sleep(9999)

    original = hc._TIMEOUT_SEC
    hc._TIMEOUT_SEC = 0.05
    try:
        results = await hc.run_health_checks(HangingClient(), ["slow/model"])
    finally:
        hc._TIMEOUT_SEC = original

    ok, err = results["slow/model"]
    assert ok is False
    assert "No reply" in err
