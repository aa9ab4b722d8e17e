"""Backend connectivity: target resolution, transports and the RPC session."""

from .client import PendingCall, RpcSessionClient
from .errors import (
    RpcCallError,
    RpcConnectionError,
    RpcDisconnectedError,
    RpcError,
    RpcSchemaError,
    RpcTimeoutError,
    TransportClosed,
)
from .session_state import ConnectionState, ConnectionTracker
from .target import BackendTarget, PageLocation, append_token, resolve_backend_target, workspace_file_url
from .timers import LoopScheduler, Scheduler

__all__ = [
    "BackendTarget",
    "ConnectionState",
    "ConnectionTracker",
    "LoopScheduler",
    "PageLocation",
    "PendingCall",
    "RpcCallError",
    "RpcConnectionError",
    "RpcDisconnectedError",
    "RpcError",
    "RpcSchemaError",
    "RpcSessionClient",
    "RpcTimeoutError",
    "Scheduler",
    "TransportClosed",
    "append_token",
    "resolve_backend_target",
    "workspace_file_url",
]
