"""Child process supervision: spawn, readiness gating and coordinated shutdown."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import os
import signal
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from launcher.errors import BackendExitedEarly, LauncherError
from launcher.process.probe import ReadinessProbe

LOGGER = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ProcessState(enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    SPAWNED = "SPAWNED"
    READY = "READY"
    EXITED = "EXITED"


_ALLOWED = {
    ProcessState.NOT_STARTED: {ProcessState.SPAWNED},
    ProcessState.SPAWNED: {ProcessState.READY, ProcessState.EXITED},
    ProcessState.READY: {ProcessState.EXITED},
    ProcessState.EXITED: set(),
}


@dataclass
class ManagedProcess:
    """One child process and its lifecycle."""

    name: str
    command: str
    args: Sequence[str] = ()
    cwd: Optional[Union[str, os.PathLike]] = None
    env: Optional[Mapping[str, str]] = None
    state: ProcessState = ProcessState.NOT_STARTED
    returncode: Optional[int] = None
    signalled: bool = False
    process: Optional[asyncio.subprocess.Process] = field(default=None, repr=False)
    exited: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def transition(self, next_state: ProcessState) -> None:
        if next_state not in _ALLOWED[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state

    @property
    def running(self) -> bool:
        return self.state in (ProcessState.SPAWNED, ProcessState.READY)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    async def start(self) -> None:
        try:
            self.process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                cwd=None if self.cwd is None else str(self.cwd),
                env=None if self.env is None else dict(self.env),
            )
        except OSError as exc:
            raise LauncherError(f"Failed to start {self.name} ({self.command}): {exc}") from exc
        self.transition(ProcessState.SPAWNED)
        LOGGER.info("Started %s (pid=%s)", self.name, self.process.pid)

    async def wait(self) -> int:
        if self.process is None:
            raise RuntimeError(f"{self.name} was never started")
        returncode = await self.process.wait()
        if self.state is not ProcessState.EXITED:
            self.returncode = returncode
            self.transition(ProcessState.EXITED)
            self.exited.set()
        return returncode

    def send_signal(self, signum: int) -> bool:
        """Deliver ``signum`` once; later calls are no-ops."""

        if self.signalled or not self.running or self.process is None:
            return False
        self.signalled = True
        LOGGER.info("Sending %s to %s (pid=%s)", _signal_name(signum), self.name, self.process.pid)
        with contextlib.suppress(ProcessLookupError):
            if os.name == "nt":
                self.process.terminate()
            else:
                self.process.send_signal(signum)
        return True

    def kill(self) -> None:
        if not self.running or self.process is None:
            return
        LOGGER.warning("Killing %s (pid=%s) after grace period", self.name, self.process.pid)
        with contextlib.suppress(ProcessLookupError):
            self.process.kill()


@dataclass(frozen=True)
class ProcessExited:
    process: ManagedProcess
    returncode: int


@dataclass(frozen=True)
class SignalReceived:
    signum: int


SupervisorEvent = Union[ProcessExited, SignalReceived]


class Supervisor:
    """Runs children as a unit.

    Child exits and termination signals are events on one queue. The first
    termination signal, or the first child to fail while nothing is shutting
    down, sends a termination signal to every other running child exactly
    once; children still alive after the grace period are killed.
    """

    def __init__(self, *, grace_period: float = 5.0) -> None:
        self._grace_period = grace_period
        self._events: "asyncio.Queue[SupervisorEvent]" = asyncio.Queue()
        self._children: List[ManagedProcess] = []
        self._watchers: Dict[str, "asyncio.Task[Any]"] = {}
        self._stop_requested = asyncio.Event()
        self._shutting_down = False
        self._intentional = False
        self._exit_code: Optional[int] = None
        self._escalation: Optional["asyncio.Task[None]"] = None
        self._installed_signals: List[int] = []
        self._previous_handlers: Dict[int, Any] = {}

    @property
    def children(self) -> List[ManagedProcess]:
        return list(self._children)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    async def spawn(self, child: ManagedProcess) -> ManagedProcess:
        await child.start()
        self._children.append(child)
        self._watchers[child.name] = asyncio.create_task(self._watch(child), name=f"watch-{child.name}")
        return child

    async def _watch(self, child: ManagedProcess) -> None:
        returncode = await child.wait()
        await self._events.put(ProcessExited(child, returncode))

    # ------------------------------------------------------------------ #
    # Signals
    # ------------------------------------------------------------------ #

    def request_shutdown(self, signum: int = signal.SIGTERM) -> None:
        """Queue a shutdown request; must be called on the event loop thread."""

        self._stop_requested.set()
        self._events.put_nowait(SignalReceived(signum))

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(signum, self.request_shutdown, signum)
            except (NotImplementedError, RuntimeError):
                # Windows event loops lack add_signal_handler
                self._previous_handlers[signum] = signal.signal(
                    signum,
                    lambda received, _frame: loop.call_soon_threadsafe(self.request_shutdown, received),
                )
            self._installed_signals.append(signum)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in self._installed_signals:
            if signum in self._previous_handlers:
                signal.signal(signum, self._previous_handlers.pop(signum))
            else:
                loop.remove_signal_handler(signum)
        self._installed_signals.clear()

    # ------------------------------------------------------------------ #
    # Readiness
    # ------------------------------------------------------------------ #

    async def wait_until_ready(self, child: ManagedProcess, probe: ReadinessProbe) -> bool:
        """Race the probe against the child exiting and a shutdown request.

        Returns ``True`` once reachable and ``False`` when shutdown was
        requested first. Raises ``BackendExitedEarly`` when the child exits
        before the probe succeeds and ``ReadinessTimeout`` on deadline.
        """

        probe_task = asyncio.create_task(probe.wait(), name=f"probe-{child.name}")
        exit_task = asyncio.create_task(child.exited.wait(), name=f"exit-{child.name}")
        stop_task = asyncio.create_task(self._stop_requested.wait(), name="stop-requested")
        tasks = {probe_task, exit_task, stop_task}
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if probe_task in done and probe_task.exception() is None and child.running:
            child.transition(ProcessState.READY)
            return True
        if exit_task in done or not child.running:
            raise BackendExitedEarly(child.returncode)
        if stop_task in done:
            return False
        raise probe_task.exception()

    # ------------------------------------------------------------------ #
    # Shutdown
    # ------------------------------------------------------------------ #

    def begin_shutdown(self, signum: int = signal.SIGTERM, *, intentional: bool = True) -> None:
        if self._shutting_down:
            return
        self._shutting_down = True
        self._intentional = intentional
        for child in self._children:
            child.send_signal(signum)
        if any(child.running for child in self._children):
            self._escalation = asyncio.create_task(self._kill_after_grace(), name="shutdown-escalation")

    async def _kill_after_grace(self) -> None:
        await asyncio.sleep(self._grace_period)
        for child in self._children:
            child.kill()

    async def run(self) -> int:
        """Consume events until every child has exited; return the exit code."""

        try:
            while any(child.running for child in self._children) or not self._events.empty():
                event = await self._events.get()
                if isinstance(event, SignalReceived):
                    if self._shutting_down:
                        LOGGER.debug("Ignoring repeated %s during shutdown", _signal_name(event.signum))
                        continue
                    LOGGER.info("Received %s, shutting down", _signal_name(event.signum))
                    self.begin_shutdown(event.signum, intentional=True)
                    continue

                child, returncode = event.process, event.returncode
                LOGGER.info("%s exited (%s)", child.name, _describe_exit(returncode))
                if not self._shutting_down and returncode != 0:
                    self._exit_code = returncode if returncode > 0 else 1
                    self.begin_shutdown(signal.SIGTERM, intentional=False)
        finally:
            if self._escalation is not None:
                self._escalation.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._escalation
                self._escalation = None
        if self._intentional or self._exit_code is None:
            return 0
        return self._exit_code

    async def terminate(self) -> None:
        """Stop every child and wait for them, regardless of exit codes."""

        self.begin_shutdown(signal.SIGTERM, intentional=False)
        await self.run()


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        return f"signal={_signal_name(-returncode)}"
    return f"code={returncode}"
