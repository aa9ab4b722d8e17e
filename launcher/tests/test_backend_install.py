import requests

from launcher.backend import BackendAcquirer, release
from launcher.config import LauncherSettings
from launcher.install import install_backend


class _FakeResponse:
    status_code = 200

    def iter_content(self, chunk_size=1):
        yield b"#!/bin/sh\nexit 0\n"

    def close(self):
        pass


class _Session:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def get(self, url, stream=False, timeout=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return _FakeResponse()


def _acquirer(settings, tmp_path, session):
    return BackendAcquirer(
        settings,
        cache_dir=tmp_path,
        version="1.2.0",
        platform_key="linux-x64",
        session=session,
    )


def _settings(tmp_path, **overrides):
    values = {"project_root": tmp_path, "backend_url": None, "backend_release_base": None}
    values.update(overrides)
    return LauncherSettings(**values)


def test_skip_flag_does_nothing(tmp_path):
    settings = _settings(tmp_path, skip_backend_download=True, backend_url="https://x.test/b")
    session = _Session()

    assert install_backend(settings, _acquirer(settings, tmp_path, session)) == 0
    assert session.calls == 0


def test_successful_install(tmp_path):
    settings = _settings(tmp_path, backend_url="https://x.test/b")
    session = _Session()
    acquirer = _acquirer(settings, tmp_path, session)

    assert install_backend(settings, acquirer) == 0
    assert acquirer.find_cached() == tmp_path / "backend" / "1.2.0" / "linux-x64" / "codex_monitor_web"

    assert install_backend(settings, acquirer) == 0
    assert session.calls == 1


def test_missing_url_warns_unless_strict(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(release, "repository_url", lambda: "")
    settings = _settings(tmp_path)

    with caplog.at_level("WARNING"):
        assert install_backend(settings, _acquirer(settings, tmp_path, _Session())) == 0
    assert "backend download skipped" in caplog.text

    strict = _settings(tmp_path, backend_install_strict=True)
    assert install_backend(strict, _acquirer(strict, tmp_path, _Session())) == 1


def test_download_failure_prints_help(tmp_path, caplog):
    error = requests.ConnectionError("connection refused")
    settings = _settings(tmp_path, backend_url="https://x.test/b")

    with caplog.at_level("WARNING"):
        assert install_backend(settings, _acquirer(settings, tmp_path, _Session(error))) == 0
    assert "fix options" in caplog.text
    assert "platform: linux-x64" in caplog.text

    strict = _settings(tmp_path, backend_url="https://x.test/b", backend_install_strict=True)
    assert install_backend(strict, _acquirer(strict, tmp_path, _Session(error))) == 1


def test_unwritable_cache_warns_unless_strict(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    settings = _settings(tmp_path, backend_url="https://x.test/b")
    session = _Session()
    acquirer = BackendAcquirer(settings, cache_dir=blocker, version="1.2.0", platform_key="linux-x64", session=session)

    with caplog.at_level("WARNING"):
        assert install_backend(settings, acquirer) == 0
    assert "cannot create cache directory" in caplog.text
    assert session.calls == 0

    strict = _settings(tmp_path, backend_url="https://x.test/b", backend_install_strict=True)
    strict_acquirer = BackendAcquirer(strict, cache_dir=blocker, version="1.2.0", platform_key="linux-x64")
    assert install_backend(strict, strict_acquirer) == 1
