import json
import threading
import time
from pathlib import Path

import pytest

from coder_remote.core.exceptions import (
    ApiError,
    AuthorityFormatError,
    ConnectionAborted,
    SSHConfigConflictError,
)
from coder_remote.core.settings import RemoteSettings
from coder_remote.domain.connection import DeploymentCredentials, RemoteSetup

from fakes import FakeApi, FakeBinaryProvider, FakePrompts, FakeProgress, FakeSecrets, make_agent, make_snapshot

AUTHORITY = "ssh-remote+coder-vscode.dev.example.com--alice--box"
LABEL = "dev.example.com"
CREDENTIALS = DeploymentCredentials(url="https://dev.example.com", token="secret", label=LABEL)


@pytest.fixture
def settings(tmp_path):
    return RemoteSettings(
        data_dir=str(tmp_path / "data"),
        ssh_config_file=str(tmp_path / "ssh" / "config"),
        settings_file=str(tmp_path / "settings.json"),
        watch_interval=0.01,
    )


def _setup(settings, api, prompts=None, secrets=None, login=None, probe="v2.20.0"):
    return RemoteSetup(
        settings=settings,
        secrets=secrets if secrets is not None else FakeSecrets({LABEL: CREDENTIALS}),
        binary_provider=FakeBinaryProvider(Path("/usr/bin/coder")),
        prompts=prompts or FakePrompts(),
        progress=FakeProgress(),
        api_factory=lambda url, token: api,
        login=login,
        version_probe=lambda binary: probe,
        setenv_supported=lambda: True,
        on_network_status=lambda status: None,
    )


def _ssh_config(settings):
    return Path(settings.ssh_config_file).read_text()


# ============================================================
# Happy paths
# ============================================================

def test_running_workspace(settings):
    api = FakeApi()
    details = _setup(settings, api).setup(AUTHORITY)

    assert details.url == "https://dev.example.com"
    assert details.token == "secret"

    content = _ssh_config(settings)
    assert content.startswith("# --- START CODER VSCODE dev.example.com ---\nHost coder-vscode.dev.example.com--*\n")
    assert "--ssh-host-prefix coder-vscode.dev.example.com-- %h" in content
    assert "  SetEnv CODER_SSH_SESSION_TYPE=vscode\n" in content

    editor = json.loads(Path(settings.settings_file).read_text())
    assert editor["remote.SSH.remotePlatform"] == {"coder-vscode.dev.example.com--alice--box": "linux"}

    assert api.closed is False
    details.dispose()
    assert api.closed is True


def test_foreign_authority_is_ignored(settings):
    api = FakeApi()
    assert _setup(settings, api).setup("ssh-remote+myhost") is None
    assert not Path(settings.ssh_config_file).exists()


def test_malformed_authority_propagates(settings):
    with pytest.raises(AuthorityFormatError):
        _setup(settings, FakeApi()).setup("ssh-remote+coder-vscode--alice")


def test_stopped_workspace_is_started(settings):
    api = FakeApi(
        initial=make_snapshot("stopped"),
        polls=[make_snapshot("starting", build_id="b1"), make_snapshot("running", agents=[make_agent()])],
    )
    details = _setup(settings, api, FakePrompts(actions=["Start"])).setup(AUTHORITY)
    details.dispose()
    assert api.started == [("ws-1", "tv-1")]


def test_failed_start_can_be_retried(settings):
    api = FakeApi(
        initial=make_snapshot("stopped"),
        polls=[make_snapshot("stopped"), make_snapshot("running", agents=[make_agent()])],
    )
    prompts = FakePrompts(actions=["Start", "Retry"])
    details = _setup(settings, api, prompts).setup(AUTHORITY)
    details.dispose()
    assert prompts.messages[1] == "Failed to start alice/box"


def test_overrides_user_wins(settings):
    settings.ssh_config = ["loglevel INFO", "ForwardAgent yes"]
    api = FakeApi(ssh_options={"LogLevel": "DEBUG", "User": "coder"})
    _setup(settings, api).setup(AUTHORITY).dispose()

    content = _ssh_config(settings)
    assert "  loglevel INFO\n" in content
    assert "DEBUG" not in content
    assert "  ForwardAgent yes\n  User coder\n" in content


def test_deployment_without_ssh_options(settings):
    api = FakeApi()
    api.ssh_config_error = ApiError("not found", status_code=404)
    _setup(settings, api).setup(AUTHORITY).dispose()
    assert "LogLevel ERROR" in _ssh_config(settings)


# ============================================================
# Login
# ============================================================

def test_missing_credentials_without_login(settings):
    with pytest.raises(ConnectionAborted) as info:
        _setup(settings, FakeApi(), secrets=FakeSecrets()).setup(AUTHORITY)
    assert info.value.close_remote is True


def test_login_then_retry(settings):
    secrets = FakeSecrets()
    calls = []

    def login(url, label):
        calls.append((url, label))
        secrets.set_session_auth(label, "https://dev.example.com", "fresh")
        return True

    prompts = FakePrompts(actions=["Log In"])
    details = _setup(settings, FakeApi(), prompts, secrets=secrets, login=login).setup(AUTHORITY)
    details.dispose()

    assert calls == [(None, LABEL)]
    assert details.token == "fresh"


def test_login_is_retried_once(settings):
    calls = []

    def login(url, label):
        calls.append(label)
        return True

    prompts = FakePrompts(actions=["Log In", "Log In"])
    with pytest.raises(ConnectionAborted):
        _setup(settings, FakeApi(), prompts, secrets=FakeSecrets(), login=login).setup(AUTHORITY)
    assert calls == [LABEL]


def test_declined_login(settings):
    with pytest.raises(ConnectionAborted, match="Login declined"):
        _setup(settings, FakeApi(), FakePrompts(actions=[None]), secrets=FakeSecrets(), login=lambda u, l: True).setup(
            AUTHORITY
        )


def test_expired_session_triggers_login(settings):
    api = FakeApi()
    api.lookup_error = ApiError("unauthorized", status_code=401)

    def login(url, label):
        assert url == "https://dev.example.com"
        api.lookup_error = None
        return True

    details = _setup(settings, api, FakePrompts(actions=["Log In"]), login=login).setup(AUTHORITY)
    details.dispose()


def test_expired_session_while_polling(settings):
    api = FakeApi(initial=make_snapshot("pending"), polls=[ApiError("unauthorized", status_code=401)])
    with pytest.raises(ConnectionAborted):
        _setup(settings, api).setup(AUTHORITY)
    assert api.closed is True


def test_unexpected_poll_error_ends_the_attempt(settings):
    running = make_snapshot("running", agents=[make_agent("connected")])
    api = FakeApi(initial=make_snapshot("pending"), polls=[KeyError("id"), running])

    with pytest.raises(ApiError, match="Unexpected error while watching the workspace"):
        _setup(settings, api).setup(AUTHORITY)
    assert api.closed is True
    assert not Path(settings.ssh_config_file).exists()


# ============================================================
# Aborts
# ============================================================

def test_missing_workspace(settings):
    api = FakeApi()
    api.lookup_error = ApiError("not found", status_code=404)
    prompts = FakePrompts(actions=["Open Workspace"])

    with pytest.raises(ConnectionAborted) as info:
        _setup(settings, api, prompts).setup(AUTHORITY)
    assert prompts.messages == ["That workspace doesn't exist!"]
    assert info.value.close_remote is False
    assert api.closed is True


def test_incompatible_server(settings):
    prompts = FakePrompts()
    with pytest.raises(ConnectionAborted) as info:
        _setup(settings, FakeApi(), prompts, probe="v0.13.0").setup(AUTHORITY)
    assert prompts.messages == ["Incompatible Server"]
    assert info.value.close_remote is True


def test_agent_timeout_offers_reload(settings):
    api = FakeApi(initial=make_snapshot("running", agents=[make_agent("timeout")]))
    prompts = FakePrompts(actions=["Reload Window"])

    with pytest.raises(ConnectionAborted) as info:
        _setup(settings, api, prompts).setup(AUTHORITY)
    assert prompts.messages == ["Agent Timeout"]
    assert info.value.reload is True
    assert info.value.close_remote is False
    assert not Path(settings.ssh_config_file).exists()


def test_ssh_config_conflict(settings):
    path = Path(settings.ssh_config_file)
    path.parent.mkdir(parents=True)
    path.write_text("Host *\n  StrictHostKeyChecking yes\n")
    api = FakeApi()
    prompts = FakePrompts(actions=["Reload Window"])

    with pytest.raises(ConnectionAborted) as info:
        _setup(settings, api, prompts).setup(AUTHORITY)
    assert isinstance(info.value.__cause__, SSHConfigConflictError)
    assert info.value.__cause__.key == "StrictHostKeyChecking"
    assert prompts.messages == ["Unexpected SSH Config Option"]
    assert api.closed is True


def test_cancel_while_waiting(settings):
    api = FakeApi(initial=make_snapshot("pending"))
    setup = _setup(settings, api)
    errors = []

    def run():
        try:
            setup.setup(AUTHORITY)
        except ConnectionAborted as e:
            errors.append(e)

    worker = threading.Thread(target=run)
    worker.start()
    deadline = time.monotonic() + 5
    while not setup.progress.reports and time.monotonic() < deadline:
        time.sleep(0.01)
    setup.cancel()
    worker.join(5)

    assert not worker.is_alive()
    assert errors and errors[0].close_remote is False
    assert api.closed is True
