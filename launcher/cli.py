"""``codex-monitor`` command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from launcher.config import LauncherSettings, get_launcher_settings
from launcher.config.settings import default_data_dir, default_user_config_path
from launcher.config.user_config import apply_user_config, load_user_config
from launcher.errors import LauncherError
from launcher.frontend.config import (
    DEFAULT_FRONTEND_HOST,
    DEFAULT_FRONTEND_PORT,
    FRONTEND_CONFIG_FILENAME,
    ensure_frontend_assets,
    resolve_frontend_bind,
)
from launcher.options import DEFAULT_LISTEN, DEFAULT_TOKEN, DEFAULT_WORKSPACE_PATH, LaunchOptions, parse_listen_address
from launcher.runtime import run_stack

LOGGER = logging.getLogger("launcher")

EXIT_OK = 0
EXIT_USAGE = 2

EPILOG = f"""\
notes:
  - The frontend serves prebuilt static assets from dist/.
  - Frontend bind host/port defaults can be set in dist/{FRONTEND_CONFIG_FILENAME}.
  - User config: {default_user_config_path()} (override with CODEX_MONITOR_CONFIG).
  - The backend runs from a native binary when available; with no binary, a
    source checkout with cargo is used as a fallback.

examples:
  codex-monitor
  codex-monitor --token my-token
  codex-monitor --backend-only --listen 127.0.0.1:4732
  codex-monitor --frontend-only --listen 127.0.0.1:4732
"""


class LauncherUsageError(LauncherError):
    exit_code = EXIT_USAGE


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid value: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"invalid value: {value}")
    return parsed


def _listen_address(value: str) -> str:
    try:
        parse_listen_address(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codex-monitor",
        description="Start the codex-monitor web stack (backend + frontend).",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--listen",
        type=_listen_address,
        default=None,
        help=f"Backend bind address (default: {DEFAULT_LISTEN}).",
    )
    parser.add_argument("--data-dir", type=Path, default=None, help=f"Backend data directory (default: {default_data_dir()}).")
    token = parser.add_mutually_exclusive_group()
    token.add_argument("--token", default=None, help=f"Shared backend/frontend token (default: {DEFAULT_TOKEN}).")
    token.add_argument("--no-token", action="store_true", help="Disable the auth token.")
    parser.add_argument("--backend-path", default=None, help="Use an existing backend executable (skips download).")
    parser.add_argument(
        "--backend-cache-dir",
        type=Path,
        default=None,
        help=f"Backend binary cache directory (default: {default_data_dir()}).",
    )
    parser.add_argument("--no-backend-download", action="store_true", help="Disable backend auto-download.")
    parser.add_argument("--frontend-host", default=None, help=f"Frontend bind host (default: {DEFAULT_FRONTEND_HOST}).")
    parser.add_argument(
        "--frontend-port",
        type=_positive_int,
        default=None,
        help=f"Frontend bind port (default: {DEFAULT_FRONTEND_PORT}).",
    )
    workspace = parser.add_mutually_exclusive_group()
    workspace.add_argument(
        "--default-workspace",
        default=None,
        help=f"Default workspace path to open (default: {DEFAULT_WORKSPACE_PATH}).",
    )
    workspace.add_argument("--no-default-workspace", action="store_true", help="Disable default workspace auto-open.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--backend-only", action="store_true", help="Start the backend only.")
    mode.add_argument("--frontend-only", action="store_true", help="Start the frontend only.")
    return parser


def options_from_args(args: argparse.Namespace) -> LaunchOptions:
    options = LaunchOptions(
        backend_only=args.backend_only,
        frontend_only=args.frontend_only,
        allow_backend_download=not args.no_backend_download,
        backend_path=args.backend_path,
    )
    if args.listen is not None:
        options.listen = args.listen
        options.provided.add("listen")
    if args.data_dir is not None:
        options.data_dir = args.data_dir.expanduser()
        options.provided.add("data_dir")
    if args.backend_cache_dir is not None:
        options.backend_cache_dir = args.backend_cache_dir.expanduser()
        options.provided.add("backend_cache_dir")
    if args.no_token:
        options.token = None
        options.provided.add("token")
    elif args.token:
        options.token = args.token
        options.provided.add("token")
    if args.frontend_host:
        options.frontend_host = args.frontend_host
        options.provided.add("frontend_host")
    if args.frontend_port is not None:
        options.frontend_port = args.frontend_port
        options.provided.add("frontend_port")
    if args.no_default_workspace:
        options.default_workspace = None
        options.provided.add("default_workspace")
    elif args.default_workspace:
        options.default_workspace = args.default_workspace
        options.provided.add("default_workspace")
    return options


def parse_options(argv: Optional[Sequence[str]], settings: LauncherSettings) -> LaunchOptions:
    """Command line first, then the user config file for anything not given."""

    args = build_parser().parse_args(argv)
    options = options_from_args(args)
    options = apply_user_config(options, load_user_config(settings.resolved_user_config_path()))
    try:
        parse_listen_address(options.listen)
    except ValueError as exc:
        raise LauncherUsageError(str(exc)) from exc
    return options


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_launcher_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    try:
        options = parse_options(argv, settings)
    except SystemExit as exc:
        # argparse exits 0 for --help and 2 for usage errors
        return int(exc.code or 0)
    except LauncherUsageError as exc:
        LOGGER.error("%s", exc)
        return exc.exit_code

    mode = "backend" if options.backend_only else "frontend" if options.frontend_only else "backend + frontend"
    LOGGER.info("Starting (%s)", mode)
    LOGGER.info("Backend: %s", options.api_base)

    try:
        if not options.backend_only:
            dist_dir = settings.resolved_dist_dir()
            host, port = resolve_frontend_bind(dist_dir, options.frontend_host, options.frontend_port)
            ensure_frontend_assets(dist_dir)
            LOGGER.info("Frontend: http://%s:%s", host, port)
        return asyncio.run(run_stack(options, settings))
    except LauncherError as exc:
        LOGGER.error("%s", exc)
        return exc.exit_code
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
