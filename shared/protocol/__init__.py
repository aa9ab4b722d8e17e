from .rpc import (
    encode_error,
    encode_notification,
    encode_request,
    encode_result,
    parse_message,
)

__all__ = [
    "encode_error",
    "encode_notification",
    "encode_request",
    "encode_result",
    "parse_message",
]
