"""Line-delimited JSON connection event source."""

import asyncio
import json
import logging
import sys
from typing import Optional, Set, Tuple

from pydantic import BaseModel, Field, ValidationError

from ..access.gateway import AuthorizationGateway

logger = logging.getLogger(__name__)


class ConnectionEvent(BaseModel):
    username: str = Field(min_length=1)
    stable_id: Optional[str] = None


async def open_stdio_streams() -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap stdin/stdout in asyncio streams."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
    )

    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer


class LoginEventSource:
    """Feeds connection events to the gateway and writes back verdicts.

    Each input line is ``{"username": ..., "stable_id": ...}``. Each output
    line echoes the username with the verdict. Events are authorized
    concurrently, so output order follows completion, not input.
    """

    def __init__(self, gateway: AuthorizationGateway, reader, writer):
        self.gateway = gateway
        self.reader = reader
        self.writer = writer
        self.handled = 0
        self._write_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    async def serve(self) -> int:
        """Process events until the input ends. Returns the number handled."""
        logger.info("Waiting for connection events")

        while True:
            line = await self.reader.readline()
            if not line:
                break

            line = line.strip()
            if not line:
                continue

            task = asyncio.create_task(self._respond(line))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks)

        logger.info(f"Connection event input closed after {self.handled} events")
        return self.handled

    async def handle_line(self, line: bytes) -> dict:
        """Authorize a single raw event line."""
        try:
            event = ConnectionEvent.model_validate_json(line)
        except ValidationError as e:
            logger.warning(f"Malformed connection event: {e}")
            return {"error": "malformed event"}

        verdict = await self.gateway.authorize(event.username, event.stable_id)
        return {"username": event.username, **verdict.to_dict()}

    async def _respond(self, line: bytes) -> None:
        response = await self.handle_line(line)

        async with self._write_lock:
            self.writer.write((json.dumps(response) + "\n").encode())
            await self.writer.drain()
            self.handled += 1
