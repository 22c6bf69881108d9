"""Tests for whitelist_gateway.core.events: LoginEventSource."""

import asyncio
import json

import pytest

from whitelist_gateway.core.events import LoginEventSource


class CollectingWriter:
    def __init__(self):
        self.buffer = b""

    def write(self, data: bytes) -> None:
        self.buffer += data

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def lines(self) -> list:
        return [json.loads(line) for line in self.buffer.decode().splitlines()]


def _reader(*lines: str) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data((line + "\n").encode())
    reader.feed_eof()
    return reader


class TestLoginEventSource:
    @pytest.mark.asyncio
    async def test_answers_each_event(self, gateway, repository) -> None:
        await repository.add_whitelist_entry("Alice")
        writer = CollectingWriter()
        source = LoginEventSource(
            gateway,
            _reader(
                json.dumps({"username": "Alice"}),
                "",
                json.dumps({"username": "Bob", "stable_id": "uuid-2"}),
            ),
            writer,
        )

        handled = await source.serve()

        assert handled == 2
        responses = {r["username"]: r for r in writer.lines()}
        assert responses["Alice"] == {"username": "Alice", "allowed": True, "reason": None, "message": None}
        assert responses["Bob"]["allowed"] is False
        assert responses["Bob"]["reason"] == "pending review"

    @pytest.mark.asyncio
    async def test_malformed_lines_do_not_stop_the_source(self, gateway) -> None:
        writer = CollectingWriter()
        source = LoginEventSource(
            gateway,
            _reader("not json", json.dumps({"username": ""}), json.dumps({"username": "Carol"})),
            writer,
        )

        await source.serve()

        lines = writer.lines()
        assert lines.count({"error": "malformed event"}) == 2
        assert any(line.get("username") == "Carol" for line in lines)

    @pytest.mark.asyncio
    async def test_concurrent_events_for_one_user(self, gateway, repository, scheduler) -> None:
        writer = CollectingWriter()
        event = json.dumps({"username": "Dave"})
        source = LoginEventSource(gateway, _reader(*([event] * 5)), writer)

        await source.serve()

        assert all(line["reason"] == "pending review" for line in writer.lines())
        assert list(repository.requests) == ["Dave"]
        assert scheduler.pending_timers == 1
