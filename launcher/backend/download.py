"""Streaming download of the backend binary into the cache."""

from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests

from launcher.errors import DownloadError

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class DownloadResult:
    path: Path
    size_bytes: int


def is_usable_executable(path: Path, *, windows: Optional[bool] = None) -> bool:
    """True for a non-empty regular file that (off Windows) is executable."""

    windows = os.name == "nt" if windows is None else windows
    try:
        if not path.is_file() or path.stat().st_size <= 0:
            return False
    except OSError:
        return False
    return windows or os.access(path, os.X_OK)


def download_file(
    url: str,
    target: Path,
    *,
    session: Optional[Any] = None,
    timeout: float = 60.0,
    windows: Optional[bool] = None,
) -> DownloadResult:
    """Stream ``url`` to ``<target>.download`` then rename it into place."""

    windows = os.name == "nt" if windows is None else windows
    http = session or requests
    partial = target.with_name(target.name + ".download")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DownloadError(f"cannot create cache directory {target.parent}: {exc}") from exc

    LOGGER.info("Downloading backend: %s", url)
    try:
        response = http.get(url, stream=True, timeout=timeout)
    except requests.RequestException as exc:
        raise DownloadError(str(exc)) from exc

    size_bytes = 0
    with contextlib.closing(response):
        if response.status_code >= 400:
            raise DownloadError(f"HTTP {response.status_code}")
        try:
            with partial.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    handle.write(chunk)
                    size_bytes += len(chunk)
        except (requests.RequestException, OSError) as exc:
            with contextlib.suppress(OSError):
                partial.unlink()
            raise DownloadError(str(exc)) from exc

    try:
        os.replace(partial, target)
        if not windows:
            target.chmod(0o755)
    except OSError as exc:
        with contextlib.suppress(OSError):
            partial.unlink()
        raise DownloadError(f"cannot install backend at {target}: {exc}") from exc
    LOGGER.info("Downloaded backend to %s (%d bytes)", target, size_bytes)
    return DownloadResult(path=target, size_bytes=size_bytes)
