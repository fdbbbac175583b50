"""
Core utility functions
"""
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from .constants import SSH_CONFIG_PATH
from .exceptions import ConfigError


# ============================================================
# Path Utilities
# ============================================================

def expand_path(path: str) -> str:
    """
    Expand ``~`` and ``${userHome}`` in a path string.

    Args:
        path: Path as written in settings

    Returns:
        Expanded path (unchanged when there is nothing to expand)
    """
    home = str(Path.home())
    path = path.replace("${userHome}", home)
    if path.startswith("~"):
        # The remote transport resolves ~ to the home directory on every platform
        return home + path[1:]
    return path


def resolve_ssh_config_path(configured: Optional[str] = None) -> Path:
    """Resolve the SSH config file path, defaulting to ~/.ssh/config"""
    configured = (configured or "").strip()
    return Path(expand_path(configured or SSH_CONFIG_PATH))


# ============================================================
# String Utilities
# ============================================================

def escape_command_arg(arg: str) -> str:
    """
    Quote an argument for a shell-evaluated command line.

    The ProxyCommand is run through the user's shell by ssh, so every
    argument is wrapped in double quotes with embedded quotes escaped.
    """
    escaped = arg.replace('"', '\\"')
    return f'"{escaped}"'


def count_substring(needle: str, haystack: str) -> int:
    """Count non-overlapping occurrences of needle in haystack"""
    if not needle:
        return 0
    return haystack.count(needle)


def to_safe_host(raw_url: str) -> str:
    """
    Return the host of a URL in a form that is safe to use as a label.

    Args:
        raw_url: Deployment URL

    Returns:
        ASCII (IDNA) hostname

    Raises:
        ConfigError: If the URL has no host
    """
    parsed = urlparse(raw_url)
    hostname = parsed.hostname
    if not hostname:
        raise ConfigError(f"Invalid deployment URL: {raw_url}")
    try:
        return hostname.encode("idna").decode("ascii")
    except UnicodeError:
        return hostname

