from .backend_api import BackendApi
from .events import subscribe_app_server_events, subscribe_terminal_exit, subscribe_terminal_output

__all__ = [
    "BackendApi",
    "subscribe_app_server_events",
    "subscribe_terminal_exit",
    "subscribe_terminal_output",
]
