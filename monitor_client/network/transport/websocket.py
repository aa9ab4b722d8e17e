"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from monitor_client.network.errors import RpcConnectionError, TransportClosed
from monitor_client.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """WebSocket-based backend transport."""

    def __init__(self, url: str, *, open_timeout: float = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: Optional[ClientConnection] = None

    async def connect(self) -> None:
        LOGGER.info("Connecting to backend WebSocket at %s", _redact(self._url))
        try:
            self._ws = await connect(self._url, open_timeout=self._open_timeout, max_size=None)
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as exc:
            raise RpcConnectionError(f"Failed to open {_redact(self._url)}: {exc}") from exc

    async def send(self, message: str) -> None:
        if not self._ws:
            raise TransportClosed("WebSocket transport not connected")
        LOGGER.debug("WebSocket send: %.500s", message)
        try:
            await self._ws.send(message)
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc

    async def receive(self) -> str:
        if not self._ws:
            raise TransportClosed("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc
        LOGGER.debug("WebSocket receive: %.500s", raw)
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw

    async def close(self) -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport")
            ws, self._ws = self._ws, None
            await ws.close()


def _redact(url: str) -> str:
    if "token=" not in url:
        return url
    head, _, tail = url.partition("token=")
    _, amp, rest = tail.partition("&")
    return f"{head}token=***{amp}{rest}"
