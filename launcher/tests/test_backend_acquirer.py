import os
import stat

import pytest
import requests

from launcher.backend import BackendAcquirer, BackendSource, prune_cached_versions, release
from launcher.backend.acquirer import SOURCE_FALLBACK_ARGS
from launcher.config import LauncherSettings


class _FakeResponse:
    def __init__(self, chunks, status_code=200):
        self.status_code = status_code
        self._chunks = chunks
        self.closed = False

    def iter_content(self, chunk_size=1):
        yield from self._chunks

    def close(self):
        self.closed = True


class _FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, stream=False, timeout=None):
        self.requests.append((url, stream, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class _ExplodingSession:
    def get(self, *args, **kwargs):
        raise AssertionError("network must not be touched")


def _no_which(name):
    return None


def _exploding_which(name):
    raise AssertionError("PATH must not be searched")


def _settings(tmp_path, **overrides):
    values = {"project_root": tmp_path / "checkout", "backend_path": None, "backend_url": None}
    values.update(overrides)
    return LauncherSettings(**values)


def _write_executable(path, content=b"#!/bin/sh\nexit 0\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def test_explicit_path_short_circuits_everything(tmp_path):
    acquirer = BackendAcquirer(
        _settings(tmp_path),
        cache_dir=tmp_path / "cache",
        which=_exploding_which,
        session=_ExplodingSession(),
        version="1.2.0",
        platform_key="linux-x64",
    )

    command = acquirer.resolve("/opt/codex/codex_monitor_web")

    assert command.command == "/opt/codex/codex_monitor_web"
    assert command.source is BackendSource.EXPLICIT
    assert command.args == ()
    assert not (tmp_path / "cache").exists()


def test_environment_path_wins_over_cache(tmp_path):
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_path="/usr/local/bin/backend"),
        cache_dir=tmp_path / "cache",
        which=_exploding_which,
        session=_ExplodingSession(),
        version="1.2.0",
        platform_key="linux-x64",
    )

    command = acquirer.resolve()

    assert command.command == "/usr/local/bin/backend"
    assert command.source is BackendSource.ENVIRONMENT


def test_cached_binary_is_used_without_network(tmp_path):
    cached = _write_executable(tmp_path / "backend" / "1.2.0" / "linux-x64" / "codex_monitor_web")
    acquirer = BackendAcquirer(
        _settings(tmp_path),
        cache_dir=tmp_path,
        which=_exploding_which,
        session=_ExplodingSession(),
        version="1.2.0",
        platform_key="linux-x64",
    )

    command = acquirer.resolve()

    assert command.source is BackendSource.CACHE
    assert command.command == str(cached)


def test_empty_cached_file_is_ignored(tmp_path):
    target = tmp_path / "backend" / "1.2.0" / "linux-x64" / "codex_monitor_web"
    _write_executable(target, content=b"")
    acquirer = BackendAcquirer(
        _settings(tmp_path),
        cache_dir=tmp_path,
        allow_download=False,
        which=_no_which,
        version="1.2.0",
        platform_key="linux-x64",
    )

    assert acquirer.find_cached() is None
    assert acquirer.resolve() is None


def test_download_lands_in_versioned_cache(tmp_path):
    response = _FakeResponse([b"#!/bin/sh\n", b"", b"exit 0\n"])
    session = _FakeSession(response)
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_url="https://downloads.example.test/codex_monitor_web"),
        cache_dir=tmp_path,
        which=_exploding_which,
        session=session,
        version="1.2.0",
        platform_key="linux-x64",
    )

    command = acquirer.resolve()

    target = tmp_path / "backend" / "1.2.0" / "linux-x64" / "codex_monitor_web"
    assert command.source is BackendSource.DOWNLOAD
    assert command.command == str(target)
    assert target.read_bytes() == b"#!/bin/sh\nexit 0\n"
    assert os.access(target, os.X_OK)
    assert not target.with_name("codex_monitor_web.download").exists()
    assert session.requests == [("https://downloads.example.test/codex_monitor_web", True, 60.0)]
    assert response.closed


def test_failed_download_falls_through_to_path(tmp_path, caplog):
    session = _FakeSession(error=requests.ConnectionError("connection refused"))
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_url="https://downloads.example.test/codex_monitor_web"),
        cache_dir=tmp_path,
        which=lambda name: "/usr/bin/codex-monitor-web" if name == "codex-monitor-web" else None,
        session=session,
        version="1.2.0",
        platform_key="linux-x64",
    )

    with caplog.at_level("WARNING"):
        command = acquirer.resolve()

    assert command.source is BackendSource.PATH
    assert command.command == "/usr/bin/codex-monitor-web"
    assert "Backend download failed" in caplog.text


def test_http_error_status_is_a_download_failure(tmp_path):
    session = _FakeSession(_FakeResponse([], status_code=404))
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_url="https://downloads.example.test/missing"),
        cache_dir=tmp_path,
        which=_no_which,
        session=session,
        version="1.2.0",
        platform_key="linux-x64",
    )

    assert acquirer.resolve() is None
    assert not (tmp_path / "backend" / "1.2.0" / "linux-x64" / "codex_monitor_web").exists()


def test_download_disabled_by_flag_and_setting(tmp_path):
    for settings, allow in (
        (_settings(tmp_path, backend_url="https://x.test/b"), False),
        (_settings(tmp_path, backend_url="https://x.test/b", skip_backend_download=True), True),
    ):
        acquirer = BackendAcquirer(
            settings,
            cache_dir=tmp_path,
            allow_download=allow,
            which=_no_which,
            session=_ExplodingSession(),
            version="1.2.0",
            platform_key="linux-x64",
        )
        assert not acquirer.download_allowed
        assert acquirer.resolve() is None


def test_cargo_fallback_requires_checkout(tmp_path):
    which = lambda name: "/usr/bin/cargo" if name == "cargo" else None  # noqa: E731
    settings = _settings(tmp_path)
    acquirer = BackendAcquirer(
        settings,
        cache_dir=tmp_path,
        allow_download=False,
        which=which,
        version="1.2.0",
        platform_key="linux-x64",
    )
    assert acquirer.resolve() is None

    tauri_dir = settings.project_root / "src-tauri"
    tauri_dir.mkdir(parents=True)
    command = acquirer.resolve()

    assert command.source is BackendSource.SOURCE
    assert command.command == "/usr/bin/cargo"
    assert command.args == SOURCE_FALLBACK_ARGS
    assert command.cwd == tauri_dir


def test_download_url_from_release_base(tmp_path, monkeypatch):
    monkeypatch.setattr(release, "repository_url", lambda: "")
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_release_base="https://github.com/acme/codex-monitor/releases/download"),
        cache_dir=tmp_path,
        version="1.2.0",
        platform_key="linux-x64",
    )
    assert acquirer.download_url() == (
        "https://github.com/acme/codex-monitor/releases/download/v1.2.0/codex_monitor_web-linux-x64"
    )

    pinned = BackendAcquirer(
        _settings(
            tmp_path,
            backend_release_base="https://github.com/acme/codex-monitor/releases/download",
            backend_release_tag="nightly",
            backend_asset="backend.bin",
        ),
        cache_dir=tmp_path,
        version="1.2.0",
        platform_key="linux-x64",
    )
    assert pinned.download_url() == "https://github.com/acme/codex-monitor/releases/download/nightly/backend.bin"


def test_download_url_derived_from_repository(tmp_path, monkeypatch):
    monkeypatch.setattr(release, "repository_url", lambda: "https://github.com/acme/codex-monitor")
    acquirer = BackendAcquirer(_settings(tmp_path), cache_dir=tmp_path, version="2.0.0", platform_key="win32-x64")

    assert acquirer.download_url() == (
        "https://github.com/acme/codex-monitor/releases/download/v2.0.0/codex_monitor_web-win32-x64.exe"
    )
    assert acquirer.cache_path().name == "codex_monitor_web.exe"

    monkeypatch.setattr(release, "repository_url", lambda: "")
    assert acquirer.download_url() is None
    assert acquirer.download() is None


def test_prune_cached_versions(tmp_path):
    for version in ("1.0.0", "1.1.0", "1.2.0"):
        _write_executable(tmp_path / "backend" / version / "linux-x64" / "codex_monitor_web")

    removed = prune_cached_versions(tmp_path, keep=["1.2.0"])

    assert [path.name for path in removed] == ["1.0.0", "1.1.0"]
    assert sorted(path.name for path in (tmp_path / "backend").iterdir()) == ["1.2.0"]
    assert prune_cached_versions(tmp_path / "missing", keep=[]) == []


def test_unwritable_cache_falls_through_to_path(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    session = _FakeSession(_FakeResponse([b"#!/bin/sh\n"]))
    acquirer = BackendAcquirer(
        _settings(tmp_path, backend_url="https://downloads.example.test/codex_monitor_web"),
        cache_dir=blocker,
        which=lambda name: "/usr/bin/codex_monitor_web" if name == "codex_monitor_web" else None,
        session=session,
        version="1.2.0",
        platform_key="linux-x64",
    )

    with caplog.at_level("WARNING"):
        command = acquirer.resolve()

    assert command.source is BackendSource.PATH
    assert command.command == "/usr/bin/codex_monitor_web"
    assert session.requests == []
    assert "cannot create cache directory" in caplog.text
