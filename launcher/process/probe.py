"""TCP readiness probe for the backend listen address."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from launcher.errors import ReadinessTimeout

LOGGER = logging.getLogger(__name__)


@dataclass
class ReadinessProbe:
    """Repeatedly connects to ``host:port`` until one connect succeeds."""

    host: str
    port: int
    timeout: float = 180.0
    interval: float = 0.3
    connect_timeout: float = 1.0

    async def attempt(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    async def wait(self) -> None:
        """Return once the port accepts a connection; raise ``ReadinessTimeout`` otherwise."""

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        attempts = 0
        while True:
            attempts += 1
            if await self.attempt():
                LOGGER.debug("Backend reachable at %s:%s after %d attempts", self.host, self.port, attempts)
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ReadinessTimeout(f"timeout after {round(self.timeout)}s ({self.host}:{self.port})")
            # the last attempt lands on the deadline itself
            await asyncio.sleep(min(self.interval, remaining))
