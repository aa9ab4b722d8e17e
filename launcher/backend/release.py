"""Platform naming and release URL construction for backend binaries."""

from __future__ import annotations

import platform as _platform
import sys
from importlib import metadata
from typing import Optional

DISTRIBUTION_NAME = "codex-monitor"
BACKEND_BASENAME = "codex_monitor_web"
PATH_CANDIDATES = (
    "codex-monitor-web",
    "codex_monitor_web",
    "codex-monitor-web.exe",
    "codex_monitor_web.exe",
)

_SYSTEMS = {"linux": "linux", "darwin": "darwin", "win32": "win32", "cygwin": "win32"}
_MACHINES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64",
    "s390x": "s390x",
}


def normalize_system(system: Optional[str] = None) -> str:
    system = (system or sys.platform).lower()
    for prefix, name in _SYSTEMS.items():
        if system.startswith(prefix):
            return name
    return system


def normalize_machine(machine: Optional[str] = None) -> str:
    machine = (machine or _platform.machine()).lower()
    return _MACHINES.get(machine, machine)


def platform_key(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """``<platform>-<arch>`` key used in cache paths and asset names, e.g. ``linux-x64``."""

    return f"{normalize_system(system)}-{normalize_machine(machine)}"


def is_windows_key(key: str) -> bool:
    return key.startswith("win32")


def backend_filename(key: str) -> str:
    return f"{BACKEND_BASENAME}.exe" if is_windows_key(key) else BACKEND_BASENAME


def default_asset_name(key: str) -> str:
    ext = ".exe" if is_windows_key(key) else ""
    return f"{BACKEND_BASENAME}-{key}{ext}"


def package_version() -> str:
    try:
        version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"
    return (version or "").strip() or "0.0.0"


def repository_url() -> str:
    """Repository URL declared in the installed distribution's project URLs."""

    try:
        meta = metadata.metadata(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return ""
    for entry in meta.get_all("Project-URL") or []:
        label, _, url = entry.partition(",")
        if label.strip().lower() in {"repository", "source"}:
            url = url.strip()
            if url.lower().endswith(".git"):
                url = url[:-4]
            return url
    return ""


def derive_release_base(repo_url: str) -> str:
    if not repo_url:
        return ""
    normalized = repo_url.rstrip("/")
    if "github.com/" in normalized:
        return f"{normalized}/releases/download"
    return f"{normalized}/-/releases"


def build_download_url(release_base: str, tag: str, asset: str) -> str:
    """Join base, tag and asset in the layout the hosting service expects.

    GitHub style: ``<base>/releases/download/<tag>/<asset>``; GitLab style:
    ``<base>/-/releases/<tag>/downloads/<asset>``.
    """

    base = release_base.rstrip("/")
    if "/-/releases" in base and "/releases/download" not in base:
        return f"{base}/{tag}/downloads/{asset}"
    return f"{base}/{tag}/{asset}"
