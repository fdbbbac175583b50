import os

import pytest

from coder_remote.adapters.config.loader import ConfigLoader
from coder_remote.core.exceptions import ConfigError
from coder_remote.core.settings import RemoteSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("CODER_REMOTE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def _write(tmp_path, text):
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def test_defaults_without_any_source():
    settings = ConfigLoader().load_settings()
    assert settings == RemoteSettings()
    assert settings.needs_token is True
    assert settings.client_cert() is None


def test_toml_with_remote_table(tmp_path):
    path = _write(tmp_path, "\n".join([
        'header_command = "top"',
        'watch_interval = 2',
        "[remote]",
        'header_command = "table"',
        'ssh_config = ["LogLevel DEBUG"]',
        "[unrelated]",
        "x = 1",
    ]))
    settings = ConfigLoader().load_settings(path)
    assert settings.header_command == "table"
    assert settings.watch_interval == 2.0
    assert settings.ssh_config == ["LogLevel DEBUG"]


def test_priority_env_over_cli_over_toml(tmp_path, monkeypatch):
    path = _write(tmp_path, "watch_interval = 5\nbinary_path = \"/toml/coder\"\nheader_command = \"toml\"\n")
    monkeypatch.setenv("CODER_REMOTE_WATCH_INTERVAL", "3")

    settings = ConfigLoader().load_settings(
        path,
        cli_overrides={"watch_interval": 2, "binary_path": "/cli/coder", "header_command": None},
    )
    assert settings.watch_interval == 3.0
    assert settings.binary_path == "/cli/coder"
    assert settings.header_command == "toml"


def test_env_values_are_converted(monkeypatch):
    monkeypatch.setenv("CODER_REMOTE_SSH_CONFIG", "LogLevel DEBUG, User root")
    monkeypatch.setenv("CODER_REMOTE_INSECURE", "true")
    monkeypatch.setenv("CODER_REMOTE_TLS_CERT_FILE", "~/cert.pem")
    monkeypatch.setenv("CODER_REMOTE_TLS_KEY_FILE", "~/key.pem")

    settings = ConfigLoader().load_settings()
    assert settings.ssh_config == ["LogLevel DEBUG", "User root"]
    assert settings.insecure is True
    assert settings.needs_token is False
    cert, key = settings.client_cert()
    assert cert.endswith("/home/cert.pem")
    assert key.endswith("/home/key.pem")


def test_default_config_file_is_used(tmp_path):
    config_dir = tmp_path / "home" / ".config" / "coder-remote"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text('binary_path = "/opt/coder"\n')
    assert ConfigLoader().load_settings().binary_path == "/opt/coder"


def test_missing_and_invalid_files(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        ConfigLoader().load_settings(tmp_path / "missing.toml")
    with pytest.raises(ConfigError, match="Failed to parse"):
        ConfigLoader().load_settings(_write(tmp_path, "not = [valid"))


def test_settings_validation():
    assert RemoteSettings.from_dict({"ssh_config": "User root", "unknown": 1}).ssh_config == ["User root"]
    with pytest.raises(ConfigError):
        RemoteSettings.from_dict({"global_flags": 3})
    with pytest.raises(ConfigError):
        RemoteSettings.from_dict({"watch_interval": "soon"})


def test_proxy_log_dir(tmp_path):
    assert RemoteSettings().proxy_log_dir() is None
    assert RemoteSettings(proxy_log_directory="  ").proxy_log_dir() is None
    assert str(RemoteSettings(proxy_log_directory="~/logs").proxy_log_dir()) == str(tmp_path / "home" / "logs")
