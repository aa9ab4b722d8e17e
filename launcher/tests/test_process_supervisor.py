import asyncio
import os
import signal
import socket
import sys

import pytest

from launcher.errors import BackendExitedEarly
from launcher.process import ManagedProcess, ProcessState, ReadinessProbe, Supervisor

SLEEPER = "import time; time.sleep(30)"

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX signal semantics")


def _python(name: str, code: str) -> ManagedProcess:
    return ManagedProcess(name=name, command=sys.executable, args=["-c", code])


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_process_state_transitions_are_checked():
    child = _python("backend", SLEEPER)
    with pytest.raises(ValueError, match="Invalid transition"):
        child.transition(ProcessState.READY)
    child.transition(ProcessState.SPAWNED)
    child.transition(ProcessState.EXITED)
    with pytest.raises(ValueError):
        child.transition(ProcessState.SPAWNED)


@pytest.mark.asyncio
async def test_child_failure_stops_siblings_and_sets_exit_code():
    supervisor = Supervisor(grace_period=5)
    sleeper = await supervisor.spawn(_python("frontend", SLEEPER))
    await supervisor.spawn(_python("backend", "import sys; sys.exit(4)"))

    code = await asyncio.wait_for(supervisor.run(), timeout=20)

    assert code == 4
    assert sleeper.signalled
    assert sleeper.state is ProcessState.EXITED
    assert sleeper.returncode != 0


@pytest.mark.asyncio
async def test_clean_exit_of_every_child_returns_zero():
    supervisor = Supervisor()
    await supervisor.spawn(_python("backend", "pass"))

    assert await asyncio.wait_for(supervisor.run(), timeout=20) == 0


@posix_only
@pytest.mark.asyncio
async def test_shutdown_request_signals_each_child_once():
    supervisor = Supervisor(grace_period=5)
    first = await supervisor.spawn(_python("backend", SLEEPER))
    second = await supervisor.spawn(_python("frontend", SLEEPER))

    loop = asyncio.get_running_loop()
    loop.call_later(0.2, supervisor.request_shutdown, signal.SIGTERM)
    loop.call_later(0.25, supervisor.request_shutdown, signal.SIGTERM)

    code = await asyncio.wait_for(supervisor.run(), timeout=20)

    assert code == 0
    assert first.returncode == -signal.SIGTERM
    assert second.returncode == -signal.SIGTERM
    assert first.send_signal(signal.SIGTERM) is False


@posix_only
@pytest.mark.asyncio
async def test_children_ignoring_sigterm_are_killed_after_grace(tmp_path):
    marker = tmp_path / "ignoring"
    code = (
        "import pathlib, signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        f"pathlib.Path({str(marker)!r}).write_text('1')\n"
        "time.sleep(30)\n"
    )
    supervisor = Supervisor(grace_period=0.2)
    stubborn = await supervisor.spawn(_python("backend", code))
    for _ in range(200):
        if marker.exists():
            break
        await asyncio.sleep(0.05)
    assert marker.exists()

    supervisor.request_shutdown(signal.SIGTERM)
    exit_code = await asyncio.wait_for(supervisor.run(), timeout=20)

    assert exit_code == 0
    assert stubborn.returncode == -signal.SIGKILL


@pytest.mark.asyncio
async def test_wait_until_ready_reports_early_exit():
    supervisor = Supervisor()
    backend = await supervisor.spawn(_python("backend", "import sys; sys.exit(3)"))
    probe = ReadinessProbe("127.0.0.1", _unused_port(), timeout=30, interval=0.05)

    with pytest.raises(BackendExitedEarly) as excinfo:
        await supervisor.wait_until_ready(backend, probe)

    assert excinfo.value.returncode == 3
    assert excinfo.value.exit_code == 3
    assert "code=3" in str(excinfo.value)


@pytest.mark.asyncio
async def test_wait_until_ready_marks_child_ready():
    async def _on_connect(reader, writer):
        writer.close()

    server = await asyncio.start_server(_on_connect, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    supervisor = Supervisor(grace_period=5)
    backend = await supervisor.spawn(_python("backend", SLEEPER))
    try:
        ready = await supervisor.wait_until_ready(backend, ReadinessProbe("127.0.0.1", port, timeout=5))
        assert ready is True
        assert backend.state is ProcessState.READY
    finally:
        await asyncio.wait_for(supervisor.terminate(), timeout=20)
        server.close()
        await server.wait_closed()

    assert backend.state is ProcessState.EXITED


@pytest.mark.asyncio
async def test_wait_until_ready_returns_false_on_shutdown_request():
    supervisor = Supervisor(grace_period=5)
    backend = await supervisor.spawn(_python("backend", SLEEPER))
    probe = ReadinessProbe("127.0.0.1", _unused_port(), timeout=30, interval=0.05)
    asyncio.get_running_loop().call_later(0.1, supervisor.request_shutdown, signal.SIGTERM)

    assert await supervisor.wait_until_ready(backend, probe) is False
    assert await asyncio.wait_for(supervisor.run(), timeout=20) == 0


def test_exit_code_for_signalled_backend():
    exc = BackendExitedEarly(-9)
    assert exc.exit_code == 1
    assert exc.signal == 9
    assert "code=null" in str(exc)
