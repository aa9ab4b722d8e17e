"""Subscriptions to backend push topics with cleanup handles."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from monitor_client.network.client import RpcSessionClient, Unsubscribe
from shared.models.rpc import NotificationSpec
from shared.models.rpc.methods import (
    APP_SERVER_EVENT,
    TERMINAL_EXIT,
    TERMINAL_OUTPUT,
    AppServerEvent,
    TerminalExit,
    TerminalOutput,
)

LOGGER = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], Any]


def _noop() -> None:
    return None


def _subscribe(
    client: RpcSessionClient,
    spec: NotificationSpec[Any],
    on_event: Callable[[Any], Any],
    on_error: Optional[ErrorCallback],
) -> Unsubscribe:
    try:
        return client.subscribe_topic(spec, on_event)
    except Exception as exc:  # noqa: BLE001
        if on_error is not None:
            on_error(exc)
        else:
            LOGGER.error("Failed to subscribe to %s: %s", spec.name, exc)
        return _noop


def subscribe_app_server_events(
    client: RpcSessionClient,
    on_event: Callable[[AppServerEvent], Any],
    *,
    on_error: Optional[ErrorCallback] = None,
) -> Unsubscribe:
    return _subscribe(client, APP_SERVER_EVENT, on_event, on_error)


def subscribe_terminal_output(
    client: RpcSessionClient,
    on_event: Callable[[TerminalOutput], Any],
    *,
    on_error: Optional[ErrorCallback] = None,
) -> Unsubscribe:
    return _subscribe(client, TERMINAL_OUTPUT, on_event, on_error)


def subscribe_terminal_exit(
    client: RpcSessionClient,
    on_event: Callable[[TerminalExit], Any],
    *,
    on_error: Optional[ErrorCallback] = None,
) -> Unsubscribe:
    return _subscribe(client, TERMINAL_EXIT, on_event, on_error)
