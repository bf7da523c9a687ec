"""
Configuration loading: file formats, precedence and validation.
"""

import json

import pytest

from qbitmcp.config import AppConfig, ConfigError, InstanceConfig, load_config
from qbitmcp.mcp.utils.config import validate_config, validate_port


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults_give_single_default_instance():
    config = load_config(environ={})
    assert config.server_mode == "stdio"
    assert config.polling_interval_ms == 2000
    [instance] = config.get_instances()
    assert instance.name == "default"
    assert instance.base_url == "http://localhost:8080"


def test_toml_file_with_instances(tmp_path):
    path = tmp_path / "custom.toml"
    path.write_text(
        'server_mode = "http"\n'
        "http_port = 4000\n"
        "\n"
        "[[instances]]\n"
        'name = "home"\n'
        'host = "https://nas.lan"\n'
        "port = 8443\n"
        'username = "admin"\n'
        "no_verify_ssl = true\n"
        "\n"
        "[[instances]]\n"
        'name = "seedbox"\n'
        'host = "10.0.0.5"\n'
    )
    config = load_config(path, environ={})

    assert config.server_mode == "http"
    assert config.http_port == 4000
    home, seedbox = config.get_instances()
    assert home.base_url == "https://nas.lan:8443"
    assert home.username == "admin"
    assert config.verify_ssl_for(home) is False
    assert seedbox.base_url == "http://10.0.0.5:80"
    assert config.verify_ssl_for(seedbox) is True


def test_json_file_found_in_working_directory(isolated_cwd):
    (isolated_cwd / "config.json").write_text(json.dumps({"lazy_mode": True, "log_level": "debug"}))
    config = load_config(environ={})
    assert config.lazy_mode is True
    assert config.log_level == "debug"


def test_precedence_file_env_cli(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('qbittorrent_host = "file-host"\nqbittorrent_port = 1111\nhttp_port = 5000\n')

    config = load_config(
        path,
        argv={"qbittorrent_port": 3333, "http_port": None},
        environ={"QBITTORRENT_HOST": "env-host", "QBITTORRENT_PORT": "2222", "LAZY_MODE": "yes"},
    )
    assert config.qbittorrent_host == "env-host"
    assert config.qbittorrent_port == 3333
    # None CLI values never override
    assert config.http_port == 5000
    assert config.lazy_mode is True


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(tmp_path / "nope.toml", environ={})


@pytest.mark.parametrize(
    "content, message",
    [
        ("http_port = [1]\n", "http_port must be an integer"),
        ('lazy_mode = "maybe"\n', "lazy_mode must be a boolean"),
        ('instances = "home"\n', "'instances' must be a list"),
        ("[[instances]]\nname = 'x'\n", "needs both 'name' and 'host'"),
        ("not = toml = at all", "Cannot read config file"),
    ],
)
def test_invalid_values(tmp_path, content, message):
    path = tmp_path / "bad.toml"
    path.write_text(content)
    with pytest.raises(ConfigError, match=message):
        load_config(path, environ={})


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"colour": "blue", "http_port": 3100}))
    config = load_config(path, environ={})
    assert config.http_port == 3100
    assert not hasattr(config, "colour")


def test_log_file_path():
    config = AppConfig(log_file_enable=True, log_dir="/var/log/qbit", log_filename="mcp.log")
    assert str(config.log_file) == "/var/log/qbit/mcp.log"
    assert AppConfig().log_file is None


# ---------------------------------------------------------------------------
# validate_config
# ---------------------------------------------------------------------------


def test_validate_default_config():
    result = validate_config(AppConfig())
    assert result
    assert result.errors == []


def test_validate_reports_errors():
    config = AppConfig(
        server_mode="websocket",
        instances=[InstanceConfig("a", "h1"), InstanceConfig("a", "h2")],
    )
    result = validate_config(config)
    assert not result
    assert any("Unknown server mode" in e for e in result.errors)
    assert any("Duplicate instance names: a" in e for e in result.errors)


def test_validate_no_instances():
    result = validate_config(AppConfig(qbittorrent_host=""))
    assert "No qBittorrent instances configured" in result.errors


def test_validate_http_warnings():
    open_result = validate_config(AppConfig(server_mode="http", http_host="0.0.0.0"))
    assert open_result
    assert any("without an auth token" in w for w in open_result.warnings)

    short = validate_config(
        AppConfig(server_mode="http", http_host="127.0.0.1", http_auth_token="abc")
    )
    assert any("Token length (3 chars)" in w for w in short.warnings)

    bad_port = validate_config(AppConfig(server_mode="http", http_port=70000))
    assert any("outside the valid range" in e for e in bad_port.errors)


def test_validate_port():
    assert validate_port(3000, "127.0.0.1") == (True, None)
    assert validate_port(True, "127.0.0.1")[0] is False
    assert validate_port(0, "127.0.0.1")[0] is False
