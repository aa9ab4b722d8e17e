import json
from pathlib import Path

import pytest

from launcher import cli
from launcher.config import LauncherSettings, get_launcher_settings
from launcher.config.user_config import _MISSING, apply_user_config, load_user_config, pick_value
from launcher.options import LaunchOptions, parse_listen_address


@pytest.fixture
def settings(tmp_path):
    return LauncherSettings(user_config_path=tmp_path / "missing.json", project_root=tmp_path)


@pytest.fixture
def env_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("CODEX_MONITOR_CONFIG", str(tmp_path / "user.json"))
    monkeypatch.setenv("CODEX_MONITOR_PROJECT_ROOT", str(tmp_path))
    get_launcher_settings.cache_clear()
    yield tmp_path
    get_launcher_settings.cache_clear()


def test_defaults(settings):
    options = cli.parse_options([], settings)

    assert options.listen == "127.0.0.1:4732"
    assert options.token == "dev-token"
    assert options.default_workspace == "/workspace"
    assert options.allow_backend_download is True
    assert options.provided == set()
    assert options.api_base == "http://127.0.0.1:4732"


def test_flags_mark_options_provided(settings):
    options = cli.parse_options(
        [
            "--listen",
            "0.0.0.0:9000",
            "--no-token",
            "--frontend-port",
            "8080",
            "--no-default-workspace",
            "--no-backend-download",
            "--backend-only",
        ],
        settings,
    )

    assert options.listen == "0.0.0.0:9000"
    assert options.token is None
    assert options.frontend_port == 8080
    assert options.default_workspace is None
    assert options.allow_backend_download is False
    assert options.backend_only is True
    assert {"listen", "token", "frontend_port", "default_workspace"} <= options.provided


@pytest.mark.parametrize(
    "argv",
    [
        ["--frontend-port", "0"],
        ["--frontend-port", "abc"],
        ["--backend-only", "--frontend-only"],
        ["--token", "x", "--no-token"],
        ["--listen", "localhost"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(settings, argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_options(argv, settings)
    assert excinfo.value.code == 2


def test_listen_parsing():
    assert parse_listen_address("127.0.0.1:4732") == ("127.0.0.1", 4732)
    assert parse_listen_address("[::1]:8080") == ("::1", 8080)
    for bad in ("127.0.0.1", "host:0", "host:port", ":4732"):
        with pytest.raises(ValueError, match="Invalid --listen address"):
            parse_listen_address(bad)


def test_user_config_fills_unset_options(tmp_path):
    path = tmp_path / "user.json"
    path.write_text(
        json.dumps(
            {
                "backend": {"listen": "0.0.0.0:9100", "token": None, "dataDir": "~/monitor-data"},
                "frontend": {"host": "127.0.0.1", "port": "6100"},
                "defaultWorkspacePath": None,
            }
        ),
        encoding="utf-8",
    )

    options = apply_user_config(LaunchOptions(), load_user_config(path))

    assert options.listen == "0.0.0.0:9100"
    assert options.token is None
    assert options.data_dir == Path("~/monitor-data").expanduser()
    assert options.frontend_host == "127.0.0.1"
    assert options.frontend_port == 6100
    assert options.default_workspace is None
    assert {"frontend_host", "frontend_port"} <= options.provided


def test_command_line_beats_user_config(tmp_path):
    path = tmp_path / "user.json"
    path.write_text(json.dumps({"listen": "0.0.0.0:9100", "token": "from-config"}), encoding="utf-8")
    settings = LauncherSettings(user_config_path=path, project_root=tmp_path)

    options = cli.parse_options(["--listen", "127.0.0.1:5000"], settings)

    assert options.listen == "127.0.0.1:5000"
    assert options.token == "from-config"


def test_yaml_user_config(tmp_path):
    path = tmp_path / "user.yaml"
    path.write_text("backend:\n  listen: 127.0.0.1:7000\nfrontendPort: 7100\n", encoding="utf-8")

    options = apply_user_config(LaunchOptions(), load_user_config(path))

    assert options.listen == "127.0.0.1:7000"
    assert options.frontend_port == 7100


def test_invalid_user_config_is_ignored(tmp_path, caplog):
    path = tmp_path / "user.json"
    path.write_text("{broken", encoding="utf-8")

    with caplog.at_level("WARNING"):
        assert load_user_config(path) is None
    assert "Ignoring invalid config" in caplog.text
    assert load_user_config(tmp_path / "absent.json") is None


def test_pick_value_uses_first_present_key():
    config = {"token": "flat", "backend": {"token": "nested"}}

    assert pick_value(config, ("backend.token", "token")) == "nested"
    assert pick_value(config, ("frontend.port",)) is _MISSING
    assert pick_value({"backend": None}, ("backend.token",)) is _MISSING
    assert pick_value({"token": None}, ("token",)) is None


def test_main_rejects_invalid_listen_from_config(env_settings):
    (env_settings / "user.json").write_text(json.dumps({"listen": "not-an-address"}), encoding="utf-8")

    assert cli.main(["--backend-only"]) == 2


def test_main_rejects_invalid_frontend_config(env_settings):
    dist = env_settings / "dist"
    dist.mkdir()
    (dist / "index.html").write_text("<html></html>", encoding="utf-8")
    (dist / "codex-monitor.server.json").write_text('{"port": "80"}', encoding="utf-8")

    assert cli.main(["--frontend-only"]) == 2


def test_main_reports_missing_frontend_assets(env_settings):
    assert cli.main(["--frontend-only"]) == 1


def test_main_usage_error(env_settings):
    assert cli.main(["--listen", "nope"]) == 2
