"""Resolved launch options shared by the CLI and the runtime."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set, Tuple
from urllib.parse import urlsplit

from launcher.config.settings import default_data_dir

DEFAULT_LISTEN = "127.0.0.1:4732"
DEFAULT_TOKEN = "dev-token"
DEFAULT_WORKSPACE_PATH = "/workspace"


@dataclass
class LaunchOptions:
    """Everything the launcher needs to start the stack.

    ``provided`` names the options that were set explicitly (command line or
    user config) so later layers know which defaults they may replace.
    """

    listen: str = DEFAULT_LISTEN
    data_dir: Path = field(default_factory=default_data_dir)
    backend_cache_dir: Optional[Path] = None
    token: Optional[str] = DEFAULT_TOKEN
    backend_path: Optional[str] = None
    allow_backend_download: bool = True
    frontend_host: Optional[str] = None
    frontend_port: Optional[int] = None
    default_workspace: Optional[str] = DEFAULT_WORKSPACE_PATH
    backend_only: bool = False
    frontend_only: bool = False
    provided: Set[str] = field(default_factory=set)

    def is_provided(self, name: str) -> bool:
        return name in self.provided

    @property
    def api_base(self) -> str:
        return f"http://{self.listen}"


def parse_listen_address(listen: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts, raising ``ValueError`` when invalid."""

    try:
        parts = urlsplit(f"http://{listen}")
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"Invalid --listen address: {listen}") from exc
    if not parts.hostname or port is None or port <= 0:
        raise ValueError(f"Invalid --listen address: {listen}")
    return parts.hostname, port
