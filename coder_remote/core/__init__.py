"""
Core infrastructure layer
"""
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console, register_secret
from .interfaces import (
    BinaryProvider,
    ProgressReporter,
    PromptProvider,
    SecretsStore,
    WorkspaceApi,
)
from .paths import PathResolver
from .settings import RemoteSettings
from .utils import (
    count_substring,
    escape_command_arg,
    expand_path,
    resolve_ssh_config_path,
    to_safe_host,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "register_secret",
    "get_stdout_console",
    "get_stderr_console",
    "BinaryProvider",
    "ProgressReporter",
    "PromptProvider",
    "SecretsStore",
    "WorkspaceApi",
    "PathResolver",
    "RemoteSettings",
    "count_substring",
    "escape_command_arg",
    "expand_path",
    "resolve_ssh_config_path",
    "to_safe_host",
]
