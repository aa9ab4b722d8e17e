"""Per-user defaults for the launcher (``~/.miu-codex-monitor.json``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from launcher.options import LaunchOptions

LOGGER = logging.getLogger(__name__)

_MISSING = object()

LISTEN_KEYS = ("backend.listen", "listen", "backendListen")
DATA_DIR_KEYS = ("backend.dataDir", "dataDir", "backendDataDir")
CACHE_DIR_KEYS = ("backend.backendCacheDir", "backendCacheDir", "backend.cacheDir")
TOKEN_KEYS = ("backend.token", "token", "authToken")
FRONTEND_HOST_KEYS = ("frontend.host", "frontendHost")
FRONTEND_PORT_KEYS = ("frontend.port", "frontendPort")
DEFAULT_WORKSPACE_KEYS = ("defaultWorkspacePath", "defaultWorkspace", "workspace.defaultPath")


def load_user_config(path: Path) -> Optional[Dict[str, Any]]:
    """Read the user config mapping, or ``None`` when absent or invalid."""

    if not path.is_file():
        return None
    try:
        raw = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config must be a mapping")
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.warning("Ignoring invalid config at %s: %s", path, exc)
        return None
    return data


def pick_value(config: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the first dotted key present in ``config``, or a sentinel."""

    for key in keys:
        current: Any = config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                break
            current = current[part]
        else:
            return current
    return _MISSING


def _optional_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _optional_port(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = int(value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def apply_user_config(options: LaunchOptions, config: Optional[Dict[str, Any]]) -> LaunchOptions:
    """Fill options not given on the command line from the user config.

    ``token: null`` and ``defaultWorkspacePath: null`` disable the feature
    rather than falling back to the default.
    """

    if not config:
        return options

    if not options.is_provided("listen"):
        listen = _optional_string(pick_value(config, LISTEN_KEYS))
        if listen:
            options.listen = listen

    if not options.is_provided("data_dir"):
        data_dir = _optional_string(pick_value(config, DATA_DIR_KEYS))
        if data_dir:
            options.data_dir = Path(data_dir).expanduser()

    if not options.is_provided("backend_cache_dir"):
        cache_dir = _optional_string(pick_value(config, CACHE_DIR_KEYS))
        if cache_dir:
            options.backend_cache_dir = Path(cache_dir).expanduser()

    if not options.is_provided("token"):
        token = pick_value(config, TOKEN_KEYS)
        if token is None:
            options.token = None
        elif _optional_string(token):
            options.token = _optional_string(token)

    if not options.is_provided("frontend_host"):
        host = _optional_string(pick_value(config, FRONTEND_HOST_KEYS))
        if host:
            options.frontend_host = host
            options.provided.add("frontend_host")

    if not options.is_provided("frontend_port"):
        port = _optional_port(pick_value(config, FRONTEND_PORT_KEYS))
        if port:
            options.frontend_port = port
            options.provided.add("frontend_port")

    if not options.is_provided("default_workspace"):
        workspace = pick_value(config, DEFAULT_WORKSPACE_KEYS)
        if workspace is None:
            options.default_workspace = None
        elif _optional_string(workspace):
            options.default_workspace = _optional_string(workspace)

    return options
