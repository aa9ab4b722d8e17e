"""Transport abstractions for the backend message stream."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """Bidirectional text-frame stream to the backend.

    ``receive`` raises ``TransportClosed`` once the stream has ended, whether
    the remote side closed it or ``close`` was called locally.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, message: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> str:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
