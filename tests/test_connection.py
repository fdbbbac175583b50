import json
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from coder_remote.core.exceptions import AuthenticationRequired, IncompatibleServerError
from coder_remote.core.paths import PathResolver
from coder_remote.core.settings import RemoteSettings
from coder_remote.domain.connection import (
    DeploymentCredentials,
    apply_remote_settings,
    build_global_flags,
    build_proxy_command,
    migrate_session_token,
    negotiate_features,
    probe_binary_version,
    resolve_binary,
    resolve_credentials,
    update_editor_settings,
)
from coder_remote.domain.version import FeatureSet

from fakes import FakeApi, FakeBinaryProvider, FakeSecrets

WILDCARD = FeatureSet(vscodessh=True, proxy_log_directory=False, wildcard_ssh=True)
LEGACY = FeatureSet(vscodessh=True, proxy_log_directory=False, wildcard_ssh=False)


# ============================================================
# Credentials
# ============================================================

def test_migrate_session_token(tmp_path):
    paths = PathResolver(tmp_path)
    label_dir = tmp_path / "dev.example.com"
    label_dir.mkdir()
    (label_dir / "session_token").write_text("secret")

    assert migrate_session_token(paths, "dev.example.com") is True
    assert (label_dir / "session").read_text() == "secret"
    assert not (label_dir / "session_token").exists()
    assert migrate_session_token(paths, "dev.example.com") is False


def test_resolve_credentials_without_url():
    with pytest.raises(AuthenticationRequired) as info:
        resolve_credentials(FakeSecrets(), "dev.example.com")
    assert info.value.url is None


def test_resolve_credentials_without_token():
    secrets = FakeSecrets({"dev": DeploymentCredentials(url="https://dev", token="", label="dev")})
    with pytest.raises(AuthenticationRequired) as info:
        resolve_credentials(secrets, "dev")
    assert info.value.url == "https://dev"

    assert resolve_credentials(secrets, "dev", needs_token=False).url == "https://dev"


def test_credentials_repr_hides_token():
    credentials = DeploymentCredentials(url="https://dev", token="secret", label="dev")
    assert "secret" not in repr(credentials)


def test_resolve_binary_prefers_configured_path(tmp_path):
    configured = tmp_path / "coder"
    configured.write_text("")
    fallback = tmp_path / "provided"
    provider = FakeBinaryProvider(fallback)

    settings = RemoteSettings(binary_path=str(configured))
    assert resolve_binary(settings, provider, FakeApi(), "dev") == configured

    settings = RemoteSettings(binary_path=str(tmp_path / "missing"))
    assert resolve_binary(settings, provider, FakeApi(), "dev") == fallback


def test_resolve_binary_development_override(tmp_path):
    dev_binary = tmp_path / "dev-coder"
    dev_binary.write_text("")
    with mock.patch("coder_remote.domain.connection.credentials.development_binary_path", return_value=dev_binary):
        settings = RemoteSettings(development=True)
        assert resolve_binary(settings, FakeBinaryProvider(tmp_path / "other"), FakeApi(), "dev") == dev_binary


def test_probe_binary_version():
    result = subprocess.CompletedProcess([], 0, stdout=json.dumps({"version": "v2.20.0+abc"}), stderr="")
    with mock.patch("coder_remote.domain.connection.credentials.subprocess.run", return_value=result) as run:
        assert probe_binary_version(Path("/bin/coder")) == "v2.20.0+abc"
    assert run.call_args[0][0] == ["/bin/coder", "version", "--output", "json"]


def test_negotiate_prefers_binary_version():
    features = negotiate_features(FakeApi(version="v0.13.0"), Path("coder"), probe=lambda binary: "v2.20.0")
    assert features.wildcard_ssh is True


def test_negotiate_falls_back_to_server_version():
    def broken(binary):
        raise OSError("exec format error")

    features = negotiate_features(FakeApi(version="v2.5.0"), Path("coder"), probe=broken)
    assert features.proxy_log_directory is True
    assert features.wildcard_ssh is False

    with pytest.raises(IncompatibleServerError):
        negotiate_features(FakeApi(version="v0.14.0"), Path("coder"), probe=broken)


# ============================================================
# Proxy command
# ============================================================

def test_global_flags_replace_configured_duplicates():
    flags = build_global_flags(
        ["--verbose", "--header-command=old", "--global-config=/old"],
        header_command="echo hi",
        global_config_dir=Path("/cfg"),
    )
    assert flags == ["--verbose", "--header-command", '"echo hi"', "--global-config", '"/cfg"']


def test_global_flags_keep_configured_header_without_command():
    assert build_global_flags(["--header-command=old"]) == ["--header-command=old"]


def test_wildcard_proxy_command(tmp_path):
    paths = PathResolver(tmp_path)
    flags = build_global_flags([], global_config_dir=paths.global_config_dir("dev.example.com"))
    command = build_proxy_command(
        Path("/usr/bin/coder"),
        "dev.example.com",
        "coder-vscode.dev.example.com--",
        WILDCARD,
        paths,
        global_flags=flags,
    )
    assert command == (
        f'"/usr/bin/coder" --global-config "{tmp_path}/dev.example.com" ssh --stdio --usage-app=vscode '
        f'--disable-autostart --network-info-dir "{tmp_path}/net" '
        f"--ssh-host-prefix coder-vscode.dev.example.com-- %h"
    )


def test_legacy_proxy_command(tmp_path):
    paths = PathResolver(tmp_path)
    command = build_proxy_command(Path("/usr/bin/coder"), "dev.example.com", "unused", LEGACY, paths)
    assert command == (
        f'"/usr/bin/coder" vscodessh --network-info-dir "{tmp_path}/net" '
        f'--session-token-file "{tmp_path}/dev.example.com/session" '
        f'--url-file "{tmp_path}/dev.example.com/url" %h'
    )


def test_log_dir_only_when_supported(tmp_path):
    paths = PathResolver(tmp_path)
    log_dir = tmp_path / "logs"

    command = build_proxy_command(Path("coder"), "", "coder-vscode--", WILDCARD, paths, log_dir=log_dir)
    assert "--log-dir" not in command
    assert not log_dir.exists()

    features = FeatureSet(vscodessh=True, proxy_log_directory=True, wildcard_ssh=True)
    command = build_proxy_command(Path("coder"), "", "coder-vscode--", features, paths, log_dir=log_dir)
    assert f'--log-dir "{log_dir}" -v --ssh-host-prefix' in command
    assert log_dir.is_dir()


# ============================================================
# Editor settings
# ============================================================

def test_apply_remote_settings():
    settings = {}
    assert apply_remote_settings(settings, "coder-vscode--alice--box", "linux") is True
    assert settings == {
        "remote.SSH.remotePlatform": {"coder-vscode--alice--box": "linux"},
        "remote.SSH.connectTimeout": 1800,
    }
    assert apply_remote_settings(settings, "coder-vscode--alice--box", "linux") is False


def test_apply_remote_settings_keeps_higher_timeout():
    settings = {"remote.SSH.connectTimeout": 3600, "remote.SSH.remotePlatform": {"other": "windows"}}
    assert apply_remote_settings(settings, "host", "darwin") is True
    assert settings["remote.SSH.connectTimeout"] == 3600
    assert settings["remote.SSH.remotePlatform"] == {"other": "windows", "host": "darwin"}


def test_update_editor_settings_creates_file(tmp_path):
    path = tmp_path / "User" / "settings.json"
    assert update_editor_settings(path, "host", "linux") is True
    assert json.loads(path.read_text())["remote.SSH.remotePlatform"] == {"host": "linux"}
    assert update_editor_settings(path, "host", "linux") is False


def test_update_editor_settings_skips_unparseable_file(tmp_path):
    path = tmp_path / "settings.json"
    content = '{\n  // comment\n  "editor.fontSize": 14,\n}\n'
    path.write_text(content)
    assert update_editor_settings(path, "host", "linux") is False
    assert path.read_text() == content
