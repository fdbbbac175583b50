"""
Local ssh client capabilities
"""
import re
import subprocess
from typing import Optional

from ...core.constants import MIN_SETENV_OPENSSH_VERSION
from ...core.logging import get_logger

logger = get_logger(__name__)

OPENSSH_VERSION_PATTERN = re.compile(r"OpenSSH_(?:for_Windows_)?([\d.]+)[^,]*")


def ssh_version_supports_setenv(version_string: str) -> bool:
    """
    Check whether an ``ssh -V`` banner is from OpenSSH 7.8 or newer.

    Args:
        version_string: e.g. "OpenSSH_8.9p1 Ubuntu-3ubuntu0.1, OpenSSL 3.0.2"

    Returns:
        True if SetEnv is supported
    """
    match = OPENSSH_VERSION_PATTERN.search(version_string)
    if not match:
        return False

    parts = match.group(1).split(".")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return False

    return (int(parts[0]), int(parts[1])) >= MIN_SETENV_OPENSSH_VERSION


def ssh_supports_setenv(ssh_binary: str = "ssh") -> bool:
    """Run ``ssh -V`` (which prints to stderr) and check the version"""
    banner = _ssh_version_banner(ssh_binary)
    if banner is None:
        return False
    return ssh_version_supports_setenv(banner)


def _ssh_version_banner(ssh_binary: str) -> Optional[str]:
    try:
        result = subprocess.run(
            [ssh_binary, "-V"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"[ssh] Unable to determine ssh version: {e}")
        return None
    return result.stderr.strip()
