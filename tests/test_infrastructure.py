import os
import stat
from pathlib import Path
from unittest import mock

import pytest

from coder_remote.core.exceptions import BinaryNotFoundError
from coder_remote.core.paths import PathResolver
from coder_remote.infrastructure.binary.provider import LocalBinaryProvider
from coder_remote.infrastructure.state.secrets_store import FileSecretsStore

from fakes import FakeApi


# ============================================================
# Secrets store
# ============================================================

def test_set_and_get_session_auth(tmp_path):
    store = FileSecretsStore(PathResolver(tmp_path))
    store.set_session_auth("dev.example.com", "https://dev.example.com", "secret")

    credentials = store.get_session_auth("dev.example.com")
    assert credentials.url == "https://dev.example.com"
    assert credentials.token == "secret"

    session = tmp_path / "dev.example.com" / "session"
    assert session.read_text() == "secret"
    assert stat.S_IMODE(session.stat().st_mode) == 0o600


def test_unlabeled_credentials_live_in_data_dir(tmp_path):
    store = FileSecretsStore(PathResolver(tmp_path))
    store.set_session_auth("", "https://legacy.example.com", "token")
    assert (tmp_path / "url").read_text() == "https://legacy.example.com"
    assert store.get_session_auth("other") is None


def test_change_listeners(tmp_path):
    store = FileSecretsStore(PathResolver(tmp_path))
    seen = []
    unsubscribe = store.on_change("dev", seen.append)

    store.set_session_auth("dev", "https://dev", "one")
    store.set_session_auth("other", "https://other", "two")
    store.clear_session_auth("dev")
    unsubscribe()
    store.set_session_auth("dev", "https://dev", "three")

    assert [c.token for c in seen] == ["one", ""]


# ============================================================
# Binary provider
# ============================================================

def test_cached_binary_is_preferred(tmp_path):
    paths = PathResolver(tmp_path)
    binary = paths.binary_cache_dir("dev") / "coder"
    binary.parent.mkdir(parents=True)
    binary.write_text("#!/bin/sh\n")
    os.chmod(binary, 0o755)

    with mock.patch("coder_remote.infrastructure.binary.provider.shutil.which", return_value="/usr/bin/coder"):
        assert LocalBinaryProvider(paths).fetch_binary(FakeApi(), "dev") == binary


def test_falls_back_to_path(tmp_path):
    paths = PathResolver(tmp_path)
    binary = paths.binary_cache_dir("dev") / "coder"
    binary.parent.mkdir(parents=True)
    binary.write_text("not executable")
    os.chmod(binary, 0o644)

    with mock.patch("coder_remote.infrastructure.binary.provider.shutil.which", return_value="/usr/bin/coder"):
        assert LocalBinaryProvider(paths).fetch_binary(FakeApi(), "dev") == Path("/usr/bin/coder")


def test_missing_binary(tmp_path):
    with mock.patch("coder_remote.infrastructure.binary.provider.shutil.which", return_value=None):
        with pytest.raises(BinaryNotFoundError, match="https://dev.example.com/bin"):
            LocalBinaryProvider(PathResolver(tmp_path)).fetch_binary(FakeApi(), "dev")
