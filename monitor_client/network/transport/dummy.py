"""In-memory loopback transport for offline testing."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from monitor_client.network.errors import RpcConnectionError, TransportClosed

from .base import BaseTransport

LOGGER = logging.getLogger(__name__)

_CLOSED = object()


class DummyTransport(BaseTransport):
    """Records outbound frames and replays frames fed by the test."""

    def __init__(self, *, fail_connect: Optional[Exception] = None) -> None:
        self.sent: List[str] = []
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0
        self._fail_connect = fail_connect
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def connect(self) -> None:
        self.connect_calls += 1
        LOGGER.debug("Dummy transport connect()")
        if self._fail_connect is not None:
            raise RpcConnectionError(str(self._fail_connect)) from self._fail_connect
        self.connected = True

    async def send(self, message: str) -> None:
        if not self.connected:
            raise TransportClosed("Dummy transport not connected")
        LOGGER.debug("Dummy transport send(): %s", message)
        self.sent.append(message)

    async def receive(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSED:
            self.connected = False
            raise TransportClosed("Dummy transport closed")
        return item

    async def close(self) -> None:
        LOGGER.debug("Dummy transport close()")
        self.close_calls += 1
        if self.connected:
            self.connected = False
            self._inbox.put_nowait(_CLOSED)

    def feed(self, message: str) -> None:
        """Queue one inbound frame."""

        self._inbox.put_nowait(message)

    def drop(self) -> None:
        """Simulate the remote side closing the stream."""

        self._inbox.put_nowait(_CLOSED)
