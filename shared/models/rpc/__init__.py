from .envelope import RpcErrorBody, RpcNotification, RpcReply, RpcRequest
from .methods import MethodSpec, NotificationSpec

__all__ = [
    "RpcErrorBody",
    "RpcNotification",
    "RpcReply",
    "RpcRequest",
    "MethodSpec",
    "NotificationSpec",
]
