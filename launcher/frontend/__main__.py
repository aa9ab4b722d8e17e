"""Run the frontend asset server (``python -m launcher.frontend``)."""

from __future__ import annotations

import argparse
import errno
import logging
import socket
import sys
from pathlib import Path
from typing import Final, Optional

import uvicorn

from launcher.errors import LauncherError
from launcher.frontend.app import create_app
from launcher.frontend.config import resolve_frontend_bind
from shared.models.runtime import RuntimeConfig

LOGGER = logging.getLogger("launcher.frontend")

PORT_IN_USE_MESSAGE: Final[str] = (
    "Frontend server failed to start: {host}:{port} is already in use.\n"
    "Stop the conflicting process or choose another port via --port or "
    "codex-monitor.server.json."
)
WINDOWS_IN_USE_ERRORS: Final[set[int]] = {10013, 10048}


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid port: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"invalid port: {value}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codex-monitor-frontend",
        description="Static file server for the prebuilt codex-monitor frontend.",
    )
    parser.add_argument("--root", type=Path, default=Path("dist"), help="Frontend dist root (default: dist).")
    parser.add_argument("--host", default=None, help="Bind host (default: config file or 0.0.0.0).")
    parser.add_argument("--port", type=_positive_int, default=None, help="Bind port (default: config file or 5176).")
    parser.add_argument("--api-base", default=None, help="Backend API base handed to the page.")
    parser.add_argument("--token", default=None, help="Backend token handed to the page.")
    workspace = parser.add_mutually_exclusive_group()
    workspace.add_argument("--default-workspace", default=None, help="Workspace path the page opens by default.")
    workspace.add_argument(
        "--no-default-workspace",
        action="store_true",
        help="Disable opening a default workspace.",
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
        help="Log level for server output.",
    )
    return parser


def _port_in_use(exc: OSError) -> bool:
    if exc.errno == errno.EADDRINUSE:
        return True
    winerror = getattr(exc, "winerror", None)
    return isinstance(winerror, int) and winerror in WINDOWS_IN_USE_ERRORS


def ensure_port_available(host: str, port: int) -> None:
    try:
        addr_info = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise SystemExit(f"Unable to resolve host '{host}': {exc}") from exc

    last_error: OSError | None = None
    for family, socktype, proto, _, sockaddr in addr_info:
        try:
            with socket.socket(family, socktype, proto) as test_sock:
                test_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                test_sock.bind(sockaddr)
        except OSError as exc:
            last_error = exc
            if _port_in_use(exc):
                raise SystemExit(PORT_IN_USE_MESSAGE.format(host=host, port=port)) from exc
            continue
        else:
            return
    if last_error is not None:
        raise SystemExit(f"Unable to validate port availability for {host}:{port}: {last_error}") from last_error


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    runtime = RuntimeConfig(
        api_base=args.api_base,
        token=args.token,
        default_workspace_path=args.default_workspace,
        disable_default_workspace=True if args.no_default_workspace else None,
    )
    try:
        host, port = resolve_frontend_bind(args.root, args.host, args.port)
        app = create_app(args.root, runtime)
    except LauncherError as exc:
        LOGGER.error("%s", exc)
        return exc.exit_code

    ensure_port_available(host, port)
    LOGGER.info("Serving %s on http://%s:%s", args.root, host, port)
    uvicorn.run(app, host=host, port=port, log_level=args.log_level, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
