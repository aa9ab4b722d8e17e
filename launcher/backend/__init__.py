"""Backend executable resolution, caching and download."""

from .acquirer import BackendAcquirer, BackendCommand, BackendSource, prune_cached_versions
from .download import DownloadResult, download_file, is_usable_executable

__all__ = [
    "BackendAcquirer",
    "BackendCommand",
    "BackendSource",
    "DownloadResult",
    "download_file",
    "is_usable_executable",
    "prune_cached_versions",
]
