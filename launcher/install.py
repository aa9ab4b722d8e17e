"""Install-time backend download (``codex-monitor-install-backend``).

Runs once after the package is installed so the first ``codex-monitor``
start does not have to fetch the backend. Problems are warnings unless
``CODEX_MONITOR_BACKEND_INSTALL_STRICT`` is set.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from launcher.backend import BackendAcquirer, is_usable_executable
from launcher.config import LauncherSettings, get_launcher_settings
from launcher.errors import DownloadError

LOGGER = logging.getLogger("launcher.install")

NO_URL_MESSAGE = (
    "[codex-monitor] backend download skipped: no CODEX_MONITOR_BACKEND_URL or "
    "CODEX_MONITOR_BACKEND_RELEASE_BASE/repository.url"
)


def failure_help(acquirer: BackendAcquirer, error: Exception) -> str:
    lines = [
        f"[codex-monitor] backend download failed: {error}",
        f"[codex-monitor] platform: {acquirer.platform_key}",
        f"[codex-monitor] expected binary path: {acquirer.cache_path()}",
        "[codex-monitor] fix options:",
        "  - set CODEX_MONITOR_BACKEND_URL=https://.../codex_monitor_web",
        "  - or set CODEX_MONITOR_BACKEND_RELEASE_BASE + CODEX_MONITOR_BACKEND_RELEASE_TAG",
        "  - or run: codex-monitor --backend-path /path/to/codex_monitor_web",
        "  - or skip download: CODEX_MONITOR_SKIP_BACKEND_DOWNLOAD=1",
    ]
    return "\n".join(lines)


def install_backend(
    settings: Optional[LauncherSettings] = None,
    acquirer: Optional[BackendAcquirer] = None,
) -> int:
    """Download the backend into the cache; returns a process exit code."""

    settings = settings or get_launcher_settings()
    if settings.skip_backend_download:
        LOGGER.info("[codex-monitor] backend download skipped (CODEX_MONITOR_SKIP_BACKEND_DOWNLOAD)")
        return 0

    acquirer = acquirer or BackendAcquirer(settings)
    cached = acquirer.find_cached()
    if cached is not None:
        LOGGER.info("[codex-monitor] backend already present: %s", cached)
        return 0

    strict = settings.backend_install_strict
    if acquirer.download_url() is None:
        if strict:
            LOGGER.error("%s", NO_URL_MESSAGE)
            return 1
        LOGGER.warning("%s", NO_URL_MESSAGE)
        return 0

    try:
        path = acquirer.download()
    except DownloadError as exc:
        if strict:
            LOGGER.error("%s", failure_help(acquirer, exc))
            return 1
        LOGGER.warning("%s", failure_help(acquirer, exc))
        return 0

    if path is None or not is_usable_executable(path, windows=acquirer.windows):
        message = f"[codex-monitor] backend download finished but binary is missing: {acquirer.cache_path()}"
        if strict:
            LOGGER.error("%s", message)
            return 1
        LOGGER.warning("%s", message)
        return 0

    LOGGER.info("[codex-monitor] backend downloaded: %s", path)
    return 0


def main() -> int:
    settings = get_launcher_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    return install_backend(settings)


if __name__ == "__main__":
    sys.exit(main())
