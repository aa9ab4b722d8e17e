"""Request-correlated RPC session over one persistent backend connection."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar, Union

from pydantic import ValidationError

from monitor_client.config import ClientSettings, get_settings
from monitor_client.network.errors import (
    RpcCallError,
    RpcConnectionError,
    RpcDisconnectedError,
    RpcSchemaError,
    RpcTimeoutError,
    TransportClosed,
)
from monitor_client.network.session_state import ConnectionState, ConnectionTracker
from monitor_client.network.target import BackendTarget
from monitor_client.network.timers import LoopScheduler, Scheduler, TimerHandle
from monitor_client.network.transport import BaseTransport, WebSocketTransport
from shared.models.rpc import MethodSpec, NotificationSpec, RpcNotification, RpcReply
from shared.protocol import encode_request, parse_message

LOGGER = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")
PayloadT = TypeVar("PayloadT")

NotificationHandler = Callable[[Any], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]
TransportFactory = Callable[[str], BaseTransport]


@dataclass
class PendingCall:
    """A sent request waiting for exactly one outcome."""

    id: int
    method: str
    future: asyncio.Future
    timeout_handle: Optional[TimerHandle] = None

    def resolve(self, value: Any) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(exc)

    def _cancel_timer(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


class RpcSessionClient:
    """Turns one bidirectional message stream into awaitable calls plus topics.

    At most one connection attempt is in flight at a time. Replies are matched
    to callers strictly by id. An unexpected close rejects every pending call
    and, when anything is still waiting on the connection, schedules a
    reconnect after a fixed delay.
    """

    def __init__(
        self,
        url: str,
        *,
        transport_factory: Optional[TransportFactory] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[ClientSettings] = None,
        call_timeout: Optional[float] = None,
        reconnect_delay: Optional[float] = None,
    ) -> None:
        settings = settings or get_settings()
        self._url = url
        self._transport_factory = transport_factory or (
            lambda target_url: WebSocketTransport(target_url, open_timeout=settings.connect_timeout_seconds)
        )
        self._scheduler: Scheduler = scheduler or LoopScheduler()
        self._call_timeout = float(call_timeout if call_timeout is not None else settings.call_timeout_seconds)
        self._reconnect_delay = float(
            reconnect_delay if reconnect_delay is not None else settings.reconnect_delay_seconds
        )
        self._tracker = ConnectionTracker()
        self._transport: Optional[BaseTransport] = None
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._recv_task: Optional[asyncio.Task[None]] = None
        self._reconnect_handle: Optional[TimerHandle] = None
        self._intentional_close = False
        self._next_id = 0
        self._pending: Dict[int, PendingCall] = {}
        self._topics: Dict[str, Dict[NotificationHandler, int]] = {}
        self._background: Set[asyncio.Future] = set()

    @classmethod
    def from_target(cls, target: BackendTarget, **kwargs: Any) -> "RpcSessionClient":
        return cls(target.socket_url(), **kwargs)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ConnectionState:
        return self._tracker.state

    @property
    def is_open(self) -> bool:
        return self._transport is not None and self._tracker.is_open

    @property
    def pending_ids(self) -> List[int]:
        return list(self._pending)

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_handle is not None

    def topics(self) -> List[str]:
        return list(self._topics)

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> None:
        """Open the connection, sharing any attempt already in flight."""

        self._intentional_close = False
        await self._ensure_connected()

    async def disconnect(self) -> None:
        """Close intentionally; no automatic reconnect until new activity."""

        self._intentional_close = True
        self._cancel_reconnect()
        transport, self._transport = self._transport, None
        recv_task, self._recv_task = self._recv_task, None
        if transport is not None:
            self._tracker.transition(ConnectionState.CLOSED)
        self._reject_all("Backend connection closed by client")
        if transport is not None:
            LOGGER.info("Disconnecting from backend")
            await _close_quietly(transport)
        if recv_task is not None and recv_task is not asyncio.current_task():
            recv_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await recv_task

    async def __aenter__(self) -> "RpcSessionClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    async def _ensure_connected(self) -> None:
        if self.is_open:
            return
        task = self._connect_task
        if task is None or task.done():
            task = asyncio.create_task(self._open(), name="rpc-connect")
            self._connect_task = task
        # a cancelled caller must not abort the attempt other callers share
        await asyncio.shield(task)

    async def _open(self) -> None:
        self._cancel_reconnect()
        self._tracker.transition(ConnectionState.CONNECTING)
        transport = self._transport_factory(self._url)
        try:
            await transport.connect()
        except asyncio.CancelledError:
            self._tracker.transition(ConnectionState.CLOSED)
            raise
        except Exception as exc:  # noqa: BLE001
            self._tracker.transition(ConnectionState.CLOSED)
            LOGGER.warning("Backend connection attempt failed: %s", exc)
            if self._topics and not self._intentional_close:
                self._schedule_reconnect()
            if isinstance(exc, RpcConnectionError):
                raise
            raise RpcConnectionError(f"Backend connection failed: {exc}") from exc

        if self._intentional_close:
            # disconnect() ran while the handshake was in flight
            self._tracker.transition(ConnectionState.CLOSED)
            await _close_quietly(transport)
            raise RpcConnectionError("Backend connection closed before it opened")

        self._transport = transport
        self._tracker.transition(ConnectionState.OPEN)
        self._recv_task = asyncio.create_task(self._receive_loop(transport), name="rpc-recv")
        LOGGER.info("Connected to backend RPC endpoint")

    async def _receive_loop(self, transport: BaseTransport) -> None:
        reason: BaseException
        try:
            while True:
                raw = await transport.receive()
                self._dispatch(raw)
        except TransportClosed as exc:
            reason = exc
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Receive loop failed", exc_info=True)
            reason = exc
        self._handle_closed(transport, reason)

    def _handle_closed(self, transport: BaseTransport, reason: BaseException) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        self._recv_task = None
        self._tracker.transition(ConnectionState.CLOSED)
        wants_resume = self._has_waiters()
        self._reject_all("Backend connection lost")
        if self._intentional_close:
            return
        LOGGER.warning("Backend connection lost: %s", reason)
        if wants_resume:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None or self._intentional_close:
            return
        LOGGER.info("Reconnecting to backend in %.1fs", self._reconnect_delay)
        self._reconnect_handle = self._scheduler.call_later(self._reconnect_delay, self._on_reconnect_timer)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _has_waiters(self) -> bool:
        return bool(self._topics) or bool(self._pending)

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._intentional_close:
            return
        if not self._has_waiters():
            LOGGER.debug("Skipping reconnect: no subscriptions or pending calls")
            return
        self._spawn(self._reconnect())

    async def _reconnect(self) -> None:
        try:
            await self._ensure_connected()
        except RpcConnectionError:
            if self._has_waiters():
                self._schedule_reconnect()

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    async def call(self, method: str, params: Any = None, *, timeout: Optional[float] = None) -> Any:
        """Send ``method`` and wait for its correlated reply.

        Raises ``RpcCallError`` for an error reply, ``RpcTimeoutError`` when no
        reply arrives within ``timeout`` seconds and ``RpcConnectionError``
        when the connection cannot be established or drops while waiting.
        """

        await self.connect()
        transport = self._transport
        if transport is None:
            raise RpcConnectionError("Backend connection is not open")

        self._next_id += 1
        call_id = self._next_id
        frame = encode_request(call_id, method, params)
        budget = self._call_timeout if timeout is None else float(timeout)

        pending = PendingCall(id=call_id, method=method, future=asyncio.get_running_loop().create_future())
        pending.timeout_handle = self._scheduler.call_later(budget, self._expire, call_id, budget)
        self._pending[call_id] = pending
        try:
            await transport.send(frame)
        except Exception as exc:  # noqa: BLE001
            self._drop(call_id)
            if isinstance(exc, RpcConnectionError):
                raise
            raise RpcConnectionError(f"Failed to send {method}: {exc}") from exc

        try:
            return await pending.future
        except asyncio.CancelledError:
            self._drop(call_id)
            raise

    async def call_method(
        self,
        spec: MethodSpec[Any, ResultT],
        params: Any = None,
        *,
        timeout: Optional[float] = None,
    ) -> ResultT:
        """Typed ``call``: params are dumped by alias and the result validated."""

        raw = await self.call(spec.name, spec.dump_params(params), timeout=timeout)
        try:
            return spec.parse_result(raw)
        except ValidationError as exc:
            raise RpcSchemaError(f"Invalid result for {spec.name}: {exc}") from exc

    def _expire(self, call_id: int, budget: float) -> None:
        pending = self._pending.pop(call_id, None)
        if pending is None:
            return
        pending.timeout_handle = None
        LOGGER.warning("RPC call %s (id=%s) timed out after %.1fs", pending.method, call_id, budget)
        pending.fail(RpcTimeoutError(pending.method, budget))

    def _drop(self, call_id: int) -> None:
        pending = self._pending.pop(call_id, None)
        if pending is not None:
            pending._cancel_timer()

    def _reject_all(self, message: str) -> None:
        if not self._pending:
            return
        pending, self._pending = list(self._pending.values()), {}
        LOGGER.debug("Rejecting %d pending calls: %s", len(pending), message)
        for entry in pending:
            entry.fail(RpcDisconnectedError(message))

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #

    def subscribe(self, method: str, handler: NotificationHandler) -> Unsubscribe:
        """Register ``handler`` for ``method`` notifications.

        Registering the same handler again adds a reference rather than a
        second delivery; each returned unsubscribe drops one reference and is
        a no-op when called again.
        """

        self._intentional_close = False
        registry = self._topics.setdefault(method, {})
        registry[handler] = registry.get(handler, 0) + 1
        self._connect_in_background()

        released = False

        def unsubscribe() -> None:
            nonlocal released
            if released:
                return
            released = True
            current = self._topics.get(method)
            if current is None or handler not in current:
                return
            remaining = current[handler] - 1
            if remaining > 0:
                current[handler] = remaining
            else:
                del current[handler]
            if not current:
                del self._topics[method]

        return unsubscribe

    def subscribe_topic(self, spec: NotificationSpec[PayloadT], handler: Callable[[PayloadT], Any]) -> Unsubscribe:
        """Typed ``subscribe``: payloads failing validation are dropped."""

        def deliver(params: Any) -> Any:
            try:
                payload = spec.parse_payload(params)
            except ValidationError as exc:
                LOGGER.warning("Dropping invalid %s notification: %s", spec.name, exc)
                return None
            return handler(payload)

        return self.subscribe(spec.name, deliver)

    def _connect_in_background(self) -> None:
        if self.is_open:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet; the first call or connect() will open the stream
            return
        self._spawn(self._background_connect())

    async def _background_connect(self) -> None:
        try:
            await self._ensure_connected()
        except RpcConnectionError as exc:
            LOGGER.debug("Background connect failed: %s", exc)

    # ------------------------------------------------------------------ #
    # Inbound dispatch
    # ------------------------------------------------------------------ #

    def _dispatch(self, raw: Any) -> None:
        message = parse_message(raw)
        if message is None:
            return
        if isinstance(message, RpcReply):
            self._settle(message)
        elif isinstance(message, RpcNotification):
            self._notify(message)

    def _settle(self, reply: RpcReply) -> None:
        pending = self._pending.pop(reply.id, None)
        if pending is None:
            LOGGER.debug("Ignoring reply for unknown call id=%s", reply.id)
            return
        if reply.error is not None:
            pending.fail(RpcCallError(reply.error.message, code=reply.error.code, data=reply.error.data))
            return
        pending.resolve(reply.result)

    def _notify(self, notification: RpcNotification) -> None:
        registry = self._topics.get(notification.method)
        if not registry:
            return
        for handler in list(registry):
            if handler not in registry:
                # unsubscribed by an earlier handler in this round
                continue
            try:
                outcome = handler(notification.params)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Notification handler for %s failed", notification.method)
                continue
            if inspect.isawaitable(outcome):
                self._spawn(outcome, label=f"handler for {notification.method}")

    def _spawn(self, awaitable: Awaitable[Any], *, label: str = "background task") -> None:
        task = asyncio.ensure_future(awaitable)
        self._background.add(task)

        def _done(fut: asyncio.Future) -> None:
            self._background.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                LOGGER.error("RPC %s failed", label, exc_info=exc)

        task.add_done_callback(_done)


async def _close_quietly(transport: BaseTransport) -> None:
    try:
        await transport.close()
    except Exception:  # noqa: BLE001
        LOGGER.debug("Suppress transport close error", exc_info=True)
