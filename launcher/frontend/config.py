"""Frontend bind config (``dist/codex-monitor.server.json``)."""

from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Annotated, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from launcher.config import get_launcher_settings
from launcher.errors import FrontendAssetsMissing, FrontendConfigError

LOGGER = logging.getLogger(__name__)

FRONTEND_CONFIG_FILENAME = "codex-monitor.server.json"
DEFAULT_FRONTEND_HOST = "0.0.0.0"
DEFAULT_FRONTEND_PORT = 5176


class FrontendServerConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    host: Optional[StrictStr] = None
    port: Optional[Annotated[int, Field(strict=True, gt=0)]] = None

    def normalized_host(self) -> Optional[str]:
        if self.host is None:
            return None
        return self.host.strip() or None


def read_frontend_server_config(dist_dir: Path) -> Optional[FrontendServerConfig]:
    """Load and validate the bind config; ``None`` when the file does not exist."""

    path = dist_dir / FRONTEND_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise FrontendConfigError(f"Invalid frontend config file ({exc}): {path}") from exc
    if not isinstance(data, dict):
        raise FrontendConfigError(f"Invalid frontend config file (expected object): {path}")
    try:
        return FrontendServerConfig.model_validate(data)
    except ValidationError as exc:
        field = ".".join(str(part) for part in exc.errors()[0]["loc"]) or "config"
        expected = {"host": "string", "port": "positive integer"}.get(field, "valid value")
        raise FrontendConfigError(f"Invalid frontend config {field} (expected {expected}): {path}") from exc


def resolve_frontend_bind(
    dist_dir: Path,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> Tuple[str, int]:
    """Explicit values win, then the bind config file, then the defaults."""

    config = read_frontend_server_config(dist_dir)
    resolved_host = host or (config.normalized_host() if config else None) or DEFAULT_FRONTEND_HOST
    resolved_port = port or (config.port if config else None) or DEFAULT_FRONTEND_PORT
    return resolved_host, resolved_port


def ensure_frontend_assets(dist_dir: Path) -> Path:
    index = dist_dir / "index.html"
    if not index.is_file():
        raise FrontendAssetsMissing(
            f"Frontend assets not found: {index}. Build the frontend into {dist_dir} before launching it."
        )
    return index


def write_frontend_server_config(dist_dir: Path, project_root: Path) -> Path:
    """Create the bind config in ``dist_dir`` unless it already exists.

    A config file at the project root is copied verbatim; otherwise the
    defaults are written.
    """

    ensure_frontend_assets(dist_dir)
    target = dist_dir / FRONTEND_CONFIG_FILENAME
    if target.exists():
        LOGGER.info("Frontend config exists: %s", target)
        return target
    source = project_root / FRONTEND_CONFIG_FILENAME
    if source.is_file():
        shutil.copyfile(source, target)
        LOGGER.info("Copied frontend config: %s -> %s", source, target)
        return target
    defaults = {"host": DEFAULT_FRONTEND_HOST, "port": DEFAULT_FRONTEND_PORT}
    target.write_text(json.dumps(defaults, indent=2) + "\n", encoding="utf-8")
    LOGGER.info("Created frontend config: %s", target)
    return target


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_launcher_settings()
    parser = argparse.ArgumentParser(description="Write the frontend bind config into the dist directory.")
    parser.add_argument("--dist-dir", type=Path, default=None, help="Frontend dist directory.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        write_frontend_server_config(args.dist_dir or settings.resolved_dist_dir(), settings.project_root)
    except (FrontendAssetsMissing, OSError) as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
