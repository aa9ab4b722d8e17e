"""Error taxonomy for the RPC session client."""

from __future__ import annotations

from typing import Any, Optional


class RpcError(RuntimeError):
    """Base class for every error surfaced to RPC callers."""


class RpcConnectionError(RpcError):
    """Raised when the transport cannot be opened or is not available."""


class RpcDisconnectedError(RpcConnectionError):
    """Raised for calls that were pending when the connection dropped."""


class RpcTimeoutError(RpcError, TimeoutError):
    """Raised when no correlated reply arrives within the call budget."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"RPC call timed out: {method}")
        self.method = method
        self.timeout = timeout


class RpcCallError(RpcError):
    """Raised when the backend answers a call with an error reply."""

    def __init__(self, message: str, *, code: Optional[Any] = None, data: Optional[Any] = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class RpcSchemaError(RpcError):
    """Raised when a reply does not match the declared result schema."""


class TransportClosed(RpcConnectionError):
    """Raised by transports when the remote side closed the stream."""
