import json

import pytest

from launcher.errors import FrontendAssetsMissing, FrontendConfigError
from launcher.frontend.config import (
    FRONTEND_CONFIG_FILENAME,
    ensure_frontend_assets,
    read_frontend_server_config,
    resolve_frontend_bind,
    write_frontend_server_config,
)


def _dist(tmp_path, config=None, raw=None):
    dist = tmp_path / "dist"
    dist.mkdir(exist_ok=True)
    (dist / "index.html").write_text("<html></html>", encoding="utf-8")
    if config is not None:
        raw = json.dumps(config)
    if raw is not None:
        (dist / FRONTEND_CONFIG_FILENAME).write_text(raw, encoding="utf-8")
    return dist


def test_bind_defaults_without_config(tmp_path):
    dist = _dist(tmp_path)

    assert read_frontend_server_config(dist) is None
    assert resolve_frontend_bind(dist) == ("0.0.0.0", 5176)


def test_bind_from_config_and_overrides(tmp_path):
    dist = _dist(tmp_path, {"host": "127.0.0.1", "port": 8080, "comment": "local only"})

    assert resolve_frontend_bind(dist) == ("127.0.0.1", 8080)
    assert resolve_frontend_bind(dist, host="10.1.1.1") == ("10.1.1.1", 8080)
    assert resolve_frontend_bind(dist, port=9000) == ("127.0.0.1", 9000)


def test_blank_host_uses_default(tmp_path):
    dist = _dist(tmp_path, {"host": "  "})

    assert resolve_frontend_bind(dist) == ("0.0.0.0", 5176)


@pytest.mark.parametrize(
    "config, field",
    [
        ({"port": "8080"}, "port"),
        ({"port": 0}, "port"),
        ({"port": True}, "port"),
        ({"port": 80.5}, "port"),
        ({"host": 42}, "host"),
    ],
)
def test_invalid_values_are_rejected(tmp_path, config, field):
    dist = _dist(tmp_path, config)

    with pytest.raises(FrontendConfigError, match=f"Invalid frontend config {field}") as excinfo:
        resolve_frontend_bind(dist)
    assert excinfo.value.exit_code == 2


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
def test_unparseable_config_is_rejected(tmp_path, raw):
    dist = _dist(tmp_path, raw=raw)

    with pytest.raises(FrontendConfigError, match="Invalid frontend config file"):
        read_frontend_server_config(dist)


def test_missing_assets(tmp_path):
    with pytest.raises(FrontendAssetsMissing, match="index.html"):
        ensure_frontend_assets(tmp_path)


def test_write_config_defaults_then_keeps_existing(tmp_path):
    dist = _dist(tmp_path)
    project_root = tmp_path / "project"
    project_root.mkdir()

    target = write_frontend_server_config(dist, project_root)
    assert json.loads(target.read_text(encoding="utf-8")) == {"host": "0.0.0.0", "port": 5176}

    target.write_text('{"port": 7000}', encoding="utf-8")
    write_frontend_server_config(dist, project_root)
    assert json.loads(target.read_text(encoding="utf-8")) == {"port": 7000}


def test_write_config_copies_project_file(tmp_path):
    dist = _dist(tmp_path)
    project_root = tmp_path / "project"
    project_root.mkdir()
    (project_root / FRONTEND_CONFIG_FILENAME).write_text('{"host": "127.0.0.1"}', encoding="utf-8")

    target = write_frontend_server_config(dist, project_root)

    assert target.read_text(encoding="utf-8") == '{"host": "127.0.0.1"}'
