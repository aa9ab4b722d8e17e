"""Locate or acquire an executable backend."""

from __future__ import annotations

import enum
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from launcher.backend import release
from launcher.backend.download import download_file, is_usable_executable
from launcher.config import LauncherSettings, get_launcher_settings
from launcher.errors import DownloadError

LOGGER = logging.getLogger(__name__)

SOURCE_FALLBACK_ARGS = ("run", "--bin", release.BACKEND_BASENAME, "--")

Which = Callable[[str], Optional[str]]


class BackendSource(str, enum.Enum):
    EXPLICIT = "explicit"
    ENVIRONMENT = "environment"
    CACHE = "cache"
    DOWNLOAD = "download"
    PATH = "path"
    SOURCE = "source"


@dataclass(frozen=True)
class BackendCommand:
    """How to start the backend; extra launch arguments are appended by the runtime."""

    command: str
    args: Tuple[str, ...] = ()
    cwd: Optional[Path] = None
    env: Optional[Mapping[str, str]] = field(default=None, compare=False)
    source: BackendSource = BackendSource.EXPLICIT


class BackendAcquirer:
    """Resolve a backend executable in a fixed order.

    explicit path > ``CODEX_MONITOR_BACKEND_PATH`` > cached download >
    fresh download > executable search path > ``cargo run`` from a checkout.
    A step is skipped only when it yields nothing; an explicit path is
    returned without touching the cache, the network or PATH.
    """

    def __init__(
        self,
        settings: Optional[LauncherSettings] = None,
        *,
        cache_dir: Optional[Path] = None,
        allow_download: bool = True,
        version: Optional[str] = None,
        platform_key: Optional[str] = None,
        which: Which = shutil.which,
        session: Optional[Any] = None,
    ) -> None:
        self._settings = settings or get_launcher_settings()
        self._cache_dir = cache_dir
        self._allow_download = allow_download
        self._version = version
        self._platform_key = platform_key or release.platform_key()
        self._which = which
        self._session = session

    @property
    def version(self) -> str:
        if self._version is None:
            self._version = release.package_version()
        return self._version

    @property
    def platform_key(self) -> str:
        return self._platform_key

    @property
    def windows(self) -> bool:
        return release.is_windows_key(self._platform_key)

    @property
    def cache_dir(self) -> Path:
        return (self._cache_dir or self._settings.resolved_cache_dir()).expanduser()

    def cache_path(self) -> Path:
        return self.cache_dir / "backend" / self.version / self._platform_key / release.backend_filename(
            self._platform_key
        )

    @property
    def download_allowed(self) -> bool:
        return self._allow_download and not self._settings.skip_backend_download

    def resolve(self, explicit_path: Optional[str] = None) -> Optional[BackendCommand]:
        if explicit_path:
            return BackendCommand(command=explicit_path, source=BackendSource.EXPLICIT)

        if self._settings.backend_path:
            return BackendCommand(command=self._settings.backend_path, source=BackendSource.ENVIRONMENT)

        cached = self.find_cached()
        if cached is not None:
            return BackendCommand(command=str(cached), source=BackendSource.CACHE)

        if self.download_allowed:
            try:
                downloaded = self.download()
            except DownloadError as exc:
                LOGGER.warning(
                    "Backend download failed: %s. Set CODEX_MONITOR_BACKEND_URL or "
                    "CODEX_MONITOR_BACKEND_RELEASE_BASE.",
                    exc,
                )
                downloaded = None
            if downloaded is not None:
                return BackendCommand(command=str(downloaded), source=BackendSource.DOWNLOAD)

        in_path = self.find_in_path()
        if in_path is not None:
            return BackendCommand(command=in_path, source=BackendSource.PATH)

        return self.source_fallback()

    def find_cached(self) -> Optional[Path]:
        path = self.cache_path()
        if is_usable_executable(path, windows=self.windows):
            LOGGER.debug("Using cached backend %s", path)
            return path
        return None

    def download_url(self) -> Optional[str]:
        settings = self._settings
        if settings.backend_url:
            return settings.backend_url
        base = settings.backend_release_base or release.derive_release_base(release.repository_url())
        if not base:
            return None
        tag = settings.backend_release_tag or f"v{self.version}"
        asset = settings.backend_asset or release.default_asset_name(self._platform_key)
        return release.build_download_url(base, tag, asset)

    def download(self) -> Optional[Path]:
        """Fetch the backend into the cache; ``None`` when no source is configured.

        Raises ``DownloadError`` when the transfer fails or does not yield an
        executable file.
        """

        url = self.download_url()
        if url is None:
            LOGGER.debug("No backend download URL configured")
            return None
        target = self.cache_path()
        result = download_file(
            url,
            target,
            session=self._session,
            timeout=self._settings.download_timeout_seconds,
            windows=self.windows,
        )
        if not is_usable_executable(result.path, windows=self.windows):
            raise DownloadError(f"backend download did not produce an executable: {result.path}")
        return result.path

    def find_in_path(self) -> Optional[str]:
        for name in release.PATH_CANDIDATES:
            found = self._which(name)
            if found:
                return found
        return None

    def source_fallback(self) -> Optional[BackendCommand]:
        cargo = self._which("cargo")
        tauri_dir = self._settings.project_root / "src-tauri"
        if cargo and tauri_dir.is_dir():
            LOGGER.info("No backend binary found; falling back to cargo in %s", tauri_dir)
            return BackendCommand(
                command=cargo,
                args=SOURCE_FALLBACK_ARGS,
                cwd=tauri_dir,
                source=BackendSource.SOURCE,
            )
        return None


def prune_cached_versions(cache_dir: Path, keep: Iterable[str]) -> List[Path]:
    """Remove cached backend versions not listed in ``keep``; returns what was removed."""

    root = cache_dir / "backend"
    if not root.is_dir():
        return []
    keep_set = set(keep)
    removed: List[Path] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or entry.name in keep_set:
            continue
        shutil.rmtree(entry)
        removed.append(entry)
        LOGGER.info("Removed cached backend %s", entry)
    return removed
