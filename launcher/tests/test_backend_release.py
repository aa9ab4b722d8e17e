from launcher.backend import release


def test_platform_key_normalizes_system_and_machine():
    assert release.platform_key("linux", "x86_64") == "linux-x64"
    assert release.platform_key("darwin", "arm64") == "darwin-arm64"
    assert release.platform_key("win32", "AMD64") == "win32-x64"
    assert release.platform_key("linux", "aarch64") == "linux-arm64"
    assert release.platform_key("freebsd13", "riscv64") == "freebsd13-riscv64"


def test_backend_file_names():
    assert release.backend_filename("linux-x64") == "codex_monitor_web"
    assert release.backend_filename("win32-x64") == "codex_monitor_web.exe"
    assert release.default_asset_name("darwin-arm64") == "codex_monitor_web-darwin-arm64"
    assert release.default_asset_name("win32-ia32") == "codex_monitor_web-win32-ia32.exe"


def test_release_base_from_repository_url():
    assert release.derive_release_base("") == ""
    assert release.derive_release_base("https://github.com/acme/codex-monitor/") == (
        "https://github.com/acme/codex-monitor/releases/download"
    )
    assert release.derive_release_base("https://gitlab.example.com/acme/codex-monitor") == (
        "https://gitlab.example.com/acme/codex-monitor/-/releases"
    )


def test_download_url_shapes():
    github = release.derive_release_base("https://github.com/acme/codex-monitor")
    assert release.build_download_url(github, "v1.2.0", "codex_monitor_web-linux-x64") == (
        "https://github.com/acme/codex-monitor/releases/download/v1.2.0/codex_monitor_web-linux-x64"
    )

    gitlab = release.derive_release_base("https://gitlab.example.com/acme/codex-monitor")
    assert release.build_download_url(gitlab + "/", "v1.2.0", "codex_monitor_web-linux-x64") == (
        "https://gitlab.example.com/acme/codex-monitor/-/releases/v1.2.0/downloads/codex_monitor_web-linux-x64"
    )


def test_package_version_falls_back_when_not_installed(monkeypatch):
    monkeypatch.setattr(release, "DISTRIBUTION_NAME", "codex-monitor-not-installed-anywhere")
    assert release.package_version() == "0.0.0"
    assert release.repository_url() == ""
