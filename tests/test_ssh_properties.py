import subprocess
from unittest import mock

import pytest

from coder_remote.domain.ssh import (
    compute_ssh_properties,
    host_pattern_regex,
    parse_host_sections,
    ssh_supports_setenv,
    ssh_version_supports_setenv,
)


def test_first_matching_block_wins_per_key():
    text = "\n".join([
        "Host *",
        "  StrictHostKeyChecking yes",
        "",
        "Host host-vscode--*",
        "  StrictHostKeyChecking no",
        "  ProxyCommand cmd",
    ])
    properties = compute_ssh_properties("host-vscode--x", text)
    assert properties["StrictHostKeyChecking"] == "yes"
    assert properties["ProxyCommand"] == "cmd"


def test_later_blocks_add_missing_keys_only():
    text = "Host a*\n  User first\n\nHost *\n  User second\n  Port 2222\n"
    properties = compute_ssh_properties("abc", text)
    assert dict(properties.items()) == {"User": "first", "Port": "2222"}


def test_keys_are_case_insensitive_and_equals_is_accepted():
    text = "Host foo\n  # a comment\n  LogLevel=DEBUG\n  loglevel = ERROR\n"
    properties = compute_ssh_properties("foo", text)
    assert properties["loglevel"] == "DEBUG"
    assert len(properties) == 1


def test_options_before_first_host_are_ignored():
    text = "User root\nHost foo\n  Port 22\n"
    assert dict(compute_ssh_properties("foo", text).items()) == {"Port": "22"}


def test_non_matching_host_gets_nothing():
    assert len(compute_ssh_properties("bar", "Host foo\n  Port 22\n")) == 0


def test_multi_pattern_host_line_is_one_literal_pattern():
    text = "Host alpha beta\n  User x\n"
    assert len(compute_ssh_properties("alpha", text)) == 0
    assert compute_ssh_properties("alpha beta", text)["User"] == "x"


def test_pattern_escapes_dots_and_supports_question_mark():
    regex = host_pattern_regex("coder-vscode.dev.example.com--*")
    assert regex.match("coder-vscode.dev.example.com--alice--box")
    assert not regex.match("coder-vscodeXdev.example.com--alice--box")
    assert host_pattern_regex("web?").match("web1")
    assert not host_pattern_regex("web?").match("web12")


def test_parse_host_sections_keeps_file_order():
    sections = parse_host_sections("Host b\n  Port 1\nHost a\n  Port 2\n")
    assert [s.pattern for s in sections] == ["b", "a"]


@pytest.mark.parametrize(
    "banner, supported",
    [
        ("OpenSSH_7.8p1, OpenSSL 1.1.1", True),
        ("OpenSSH_8.9p1 Ubuntu-3ubuntu0.1, OpenSSL 3.0.2 15 Mar 2022", True),
        ("OpenSSH_for_Windows_8.1p1, LibreSSL 3.0.2", True),
        ("OpenSSH_7.7p1, OpenSSL 1.0.2", False),
        ("OpenSSH_6.0, OpenSSL", False),
        ("Sun_SSH_1.1", False),
    ],
)
def test_setenv_support_from_banner(banner, supported):
    assert ssh_version_supports_setenv(banner) is supported


def test_ssh_supports_setenv_reads_stderr():
    result = subprocess.CompletedProcess(["ssh", "-V"], 0, stdout="", stderr="OpenSSH_9.6p1, OpenSSL 3.0.13\n")
    with mock.patch("coder_remote.domain.ssh.support.subprocess.run", return_value=result):
        assert ssh_supports_setenv() is True


def test_ssh_supports_setenv_without_ssh():
    with mock.patch("coder_remote.domain.ssh.support.subprocess.run", side_effect=FileNotFoundError("ssh")):
        assert ssh_supports_setenv() is False
