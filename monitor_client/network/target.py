"""Resolve where the backend lives and how to reach its RPC endpoint.

Every function here is pure: inputs are passed in explicitly (settings,
runtime-injected config, the page location) and nothing is read from the
process environment directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from monitor_client.config import ClientSettings
from shared.models.runtime import RuntimeConfig

DEFAULT_BACKEND_PORT = 4732
DEFAULT_API_BASE = f"http://127.0.0.1:{DEFAULT_BACKEND_PORT}"
LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
REMOTE_PREFIXES = ("http://", "https://", "data:")


@dataclass(frozen=True)
class PageLocation:
    """Where the UI page itself was served from."""

    scheme: str
    hostname: str
    port: Optional[int] = None

    @classmethod
    def from_url(cls, url: str) -> "PageLocation":
        parts = urlsplit(url)
        return cls(scheme=parts.scheme or "http", hostname=parts.hostname or "", port=parts.port)

    @property
    def origin(self) -> str:
        default_port = {"http": 80, "https": 443}.get(self.scheme)
        if self.port is None or self.port == default_port:
            return f"{self.scheme}://{_host_for_url(self.hostname)}"
        return f"{self.scheme}://{_host_for_url(self.hostname)}:{self.port}"

    @property
    def is_loopback(self) -> bool:
        return is_loopback_hostname(self.hostname)


@dataclass(frozen=True)
class BackendTarget:
    api_base: str
    rpc_url: str
    token: Optional[str] = None

    def socket_url(self) -> str:
        """RPC URL with the bearer token attached, ready to dial."""

        return append_token(self.rpc_url, self.token)


def is_loopback_hostname(hostname: str) -> bool:
    normalized = hostname.strip().lower().strip("[]")
    return normalized in LOOPBACK_HOSTS


def is_loopback_url(value: str) -> bool:
    try:
        hostname = urlsplit(value).hostname
    except ValueError:
        return False
    return bool(hostname) and is_loopback_hostname(hostname)


def append_token(url: str, token: Optional[str]) -> str:
    """Set the ``token`` query parameter on ``url`` when a token is configured."""

    if not token:
        return url
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "token"]
    query.append(("token", token))
    return urlunsplit(parts._replace(query=urlencode(query)))


def resolve_backend_target(
    *,
    explicit: Optional[BackendTarget] = None,
    explicit_api_base: Optional[str] = None,
    explicit_rpc_url: Optional[str] = None,
    explicit_token: Optional[str] = None,
    settings: Optional[ClientSettings] = None,
    runtime: Optional[RuntimeConfig] = None,
    location: Optional[PageLocation] = None,
    stored_token: Optional[str] = None,
) -> BackendTarget:
    """Compute the backend API base, RPC URL and token.

    Each value is taken from the first tier that provides it: explicit
    override, environment settings, runtime-injected page config, then
    inference (same-origin for the API base, scheme swap for the RPC URL,
    the stored token for the token). Environment values that point at a
    loopback host are skipped when the page is served from a remote host,
    since a remote browser cannot reach the server's loopback interface.
    """

    if explicit is not None:
        explicit_api_base = explicit_api_base or explicit.api_base
        explicit_rpc_url = explicit_rpc_url or explicit.rpc_url
        explicit_token = explicit_token or explicit.token

    env_api_base = _usable_env_value(settings.api_base if settings else None, location)
    env_rpc_url = _usable_env_value(settings.rpc_url if settings else None, location)
    env_token = _normalize(settings.token if settings else None)

    api_base = _first(
        explicit_api_base,
        env_api_base,
        runtime.api_base if runtime else None,
    )
    if api_base is None:
        api_base = _infer_api_base(location)
    api_base = api_base.rstrip("/")

    rpc_url = _first(
        explicit_rpc_url,
        env_rpc_url,
        runtime.rpc_url if runtime else None,
    )
    if rpc_url is None:
        rpc_url = derive_rpc_url(api_base)

    token = _first(
        explicit_token,
        env_token,
        runtime.token if runtime else None,
        stored_token,
    )
    return BackendTarget(api_base=api_base, rpc_url=rpc_url, token=token)


def derive_rpc_url(api_base: str) -> str:
    base = api_base.rstrip("/")
    if base[:4].lower() == "http":
        base = "ws" + base[4:]
    return f"{base}/rpc"


def workspace_file_url(target: BackendTarget, workspace_id: Optional[str], path: str) -> str:
    """URL the UI uses to load a file from inside a workspace."""

    if not path:
        return ""
    if path.startswith(REMOTE_PREFIXES) or not workspace_id:
        return path
    url = f"{target.api_base}/api/workspaces/{quote(workspace_id, safe='')}/file?{urlencode({'path': path})}"
    return append_token(url, target.token)


def default_workspace_path(runtime: Optional[RuntimeConfig]) -> Optional[str]:
    if runtime is None:
        return None
    return _normalize(runtime.default_workspace_path)


def is_default_workspace_disabled(runtime: Optional[RuntimeConfig]) -> bool:
    return bool(runtime and runtime.disable_default_workspace)


def resolved_default_workspace_path(
    runtime: Optional[RuntimeConfig], fallback: Optional[str] = None
) -> Optional[str]:
    if is_default_workspace_disabled(runtime):
        return None
    return default_workspace_path(runtime) or fallback


def _infer_api_base(location: Optional[PageLocation]) -> str:
    if location is None or not location.hostname or location.is_loopback:
        return DEFAULT_API_BASE
    if location.port in (None, 80, 443):
        return location.origin
    return f"{location.scheme}://{_host_for_url(location.hostname)}:{DEFAULT_BACKEND_PORT}"


def _usable_env_value(value: Optional[str], location: Optional[PageLocation]) -> Optional[str]:
    value = _normalize(value)
    if value is None:
        return None
    if location is not None and location.hostname and not location.is_loopback and is_loopback_url(value):
        return None
    return value


def _host_for_url(hostname: str) -> str:
    if ":" in hostname and not hostname.startswith("["):
        return f"[{hostname}]"
    return hostname


def _normalize(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        normalized = _normalize(value)
        if normalized is not None:
            return normalized
    return None
