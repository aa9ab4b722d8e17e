"""Start the backend and frontend as one supervised stack."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from launcher.backend import BackendAcquirer, BackendCommand
from launcher.config import LauncherSettings
from launcher.config.settings import default_tmp_dir
from launcher.errors import BackendExitedEarly, BackendUnavailableError, ReadinessTimeout
from launcher.options import LaunchOptions, parse_listen_address
from launcher.process import ManagedProcess, ReadinessProbe, Supervisor

LOGGER = logging.getLogger(__name__)

NO_BACKEND_HINTS = (
    "Install a backend binary and ensure it is in PATH as `codex-monitor-web` / `codex_monitor_web`.",
    "Or set `CODEX_MONITOR_BACKEND_PATH=/path/to/codex_monitor_web`.",
    "Or set `CODEX_MONITOR_BACKEND_CACHE_DIR` to point at a cache containing the downloaded binary.",
    "Or set `CODEX_MONITOR_BACKEND_URL` (direct download URL).",
    "Or set `CODEX_MONITOR_BACKEND_RELEASE_BASE` (defaults to a GitHub Releases base).",
    "Dev fallback: install Rust + cargo and run from source (repo clone).",
)


def _is_writable_dir(path: Optional[Path]) -> bool:
    if path is None:
        return False
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


def resolve_tmp_dir(settings: LauncherSettings, environ: Optional[Mapping[str, str]] = None) -> Path:
    """First writable of CODEX_MONITOR_TMPDIR, TMPDIR, TMP, TEMP, ~/.codexmonitor/tmp."""

    environ = os.environ if environ is None else environ
    candidates: List[Optional[Path]] = [settings.tmpdir]
    for name in ("TMPDIR", "TMP", "TEMP"):
        value = (environ.get(name) or "").strip()
        candidates.append(Path(value) if value else None)
    fallback = default_tmp_dir()
    candidates.append(fallback)

    for candidate in candidates:
        if _is_writable_dir(candidate):
            return candidate  # type: ignore[return-value]
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def backend_arguments(command: BackendCommand, options: LaunchOptions) -> List[str]:
    args = [*command.args, "--listen", options.listen, "--data-dir", str(options.data_dir)]
    if options.token:
        args.extend(["--token", options.token])
    return args


def frontend_arguments(options: LaunchOptions, dist_dir: Path) -> List[str]:
    args = ["--root", str(dist_dir), "--api-base", options.api_base]
    if options.is_provided("frontend_host") and options.frontend_host:
        args.extend(["--host", options.frontend_host])
    if options.is_provided("frontend_port") and options.frontend_port:
        args.extend(["--port", str(options.frontend_port)])
    if options.default_workspace and options.default_workspace.strip():
        args.extend(["--default-workspace", options.default_workspace.strip()])
    elif options.default_workspace is None:
        args.append("--no-default-workspace")
    if options.token:
        args.extend(["--token", options.token])
    return args


def build_backend_process(
    command: BackendCommand,
    options: LaunchOptions,
    settings: LauncherSettings,
    tmp_dir: Path,
) -> ManagedProcess:
    env = dict(os.environ)
    if command.env:
        env.update(command.env)
    env.update({"TMPDIR": str(tmp_dir), "TMP": str(tmp_dir), "TEMP": str(tmp_dir)})
    return ManagedProcess(
        name="backend",
        command=command.command,
        args=backend_arguments(command, options),
        cwd=command.cwd or settings.project_root,
        env=env,
    )


def build_frontend_process(
    options: LaunchOptions,
    settings: LauncherSettings,
    python: Optional[str] = None,
    module_args: Sequence[str] = ("-m", "launcher.frontend"),
) -> ManagedProcess:
    return ManagedProcess(
        name="frontend",
        command=python or sys.executable,
        args=[*module_args, *frontend_arguments(options, settings.resolved_dist_dir())],
        cwd=settings.project_root,
        env=dict(os.environ),
    )


async def run_stack(
    options: LaunchOptions,
    settings: LauncherSettings,
    *,
    acquirer: Optional[BackendAcquirer] = None,
    supervisor: Optional[Supervisor] = None,
    frontend: Optional[ManagedProcess] = None,
    install_signal_handlers: bool = True,
) -> int:
    """Resolve and start the backend, gate on readiness, then start the frontend.

    Returns the process exit code: 0 after an intentional shutdown, the
    failing child's code otherwise.
    """

    supervisor = supervisor or Supervisor(grace_period=settings.shutdown_grace_seconds)
    if install_signal_handlers:
        supervisor.install_signal_handlers()
    try:
        backend: Optional[ManagedProcess] = None
        if not options.frontend_only:
            acquirer = acquirer or BackendAcquirer(
                settings,
                cache_dir=options.backend_cache_dir,
                allow_download=options.allow_backend_download,
            )
            command = await asyncio.to_thread(acquirer.resolve, options.backend_path)
            if command is None:
                raise BackendUnavailableError("No backend available.", NO_BACKEND_HINTS)
            LOGGER.info("Backend resolved from %s: %s", command.source.value, command.command)

            tmp_dir = resolve_tmp_dir(settings)
            LOGGER.info("tmp dir: %s", tmp_dir)
            backend = await supervisor.spawn(build_backend_process(command, options, settings, tmp_dir))

        if not options.backend_only:
            if backend is not None:
                host, port = parse_listen_address(options.listen)
                probe = ReadinessProbe(
                    host,
                    port,
                    timeout=settings.ready_timeout_seconds,
                    interval=settings.ready_interval_seconds,
                    connect_timeout=settings.ready_connect_timeout_seconds,
                )
                LOGGER.info("Waiting for backend to become ready...")
                try:
                    ready = await supervisor.wait_until_ready(backend, probe)
                except BackendExitedEarly as exc:
                    LOGGER.error("%s", exc)
                    return exc.exit_code
                except ReadinessTimeout as exc:
                    LOGGER.error("Backend not ready: %s", exc)
                    await supervisor.terminate()
                    return 1
                if not ready:
                    LOGGER.info("Shutdown requested before backend became ready")
                    return await supervisor.run()
                LOGGER.info("Backend is ready")
            try:
                await supervisor.spawn(frontend or build_frontend_process(options, settings))
            except BaseException:
                if backend is not None:
                    LOGGER.error("Frontend failed to start; stopping backend")
                    await supervisor.terminate()
                raise

        if not supervisor.children:
            LOGGER.error("Nothing to start.")
            return 1
        return await supervisor.run()
    finally:
        if install_signal_handlers:
            supervisor.remove_signal_handlers()
