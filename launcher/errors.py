"""Error taxonomy for the process launcher."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class LauncherError(RuntimeError):
    """Base class for launcher failures; ``exit_code`` is what the CLI returns."""

    exit_code: int = 1


class BackendUnavailableError(LauncherError):
    """Raised when no backend executable could be resolved."""

    def __init__(self, message: str, hints: Iterable[str] = ()) -> None:
        self.hints: Sequence[str] = tuple(hints)
        if self.hints:
            message = message + "\n- " + "\n- ".join(self.hints)
        super().__init__(message)


class DownloadError(LauncherError):
    """Raised when fetching the backend binary fails."""


class ReadinessTimeout(LauncherError):
    """Raised when the backend port never accepted a connection in time."""


class BackendExitedEarly(LauncherError):
    """Raised when the backend process exits before it became reachable."""

    def __init__(self, returncode: Optional[int]) -> None:
        self.returncode = returncode
        self.signal: Optional[int] = -returncode if returncode is not None and returncode < 0 else None
        code = "null" if returncode is None or returncode < 0 else str(returncode)
        super().__init__(f"backend exited before ready (code={code}, signal={self.signal or 'none'})")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if self.returncode is not None and self.returncode > 0:
            return self.returncode
        return 1


class FrontendAssetsMissing(LauncherError):
    """Raised when the prebuilt frontend (``index.html``) is not present."""


class FrontendConfigError(LauncherError):
    """Raised for an unreadable or invalid frontend bind config file."""

    exit_code = 2
