"""
Credential, binary and version resolution
"""
import json
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

from ...core.exceptions import AuthenticationRequired, IncompatibleServerError
from ...core.interfaces import BinaryProvider, SecretsStore, WorkspaceApi
from ...core.logging import get_logger
from ...core.paths import PathResolver
from ...core.settings import RemoteSettings
from ..version import FeatureSet, feature_set_for_version, parse_version
from .models import DeploymentCredentials

logger = get_logger(__name__)

VersionProbe = Callable[[Path], str]


# ============================================================
# Credentials
# ============================================================

def migrate_session_token(paths: PathResolver, label: str) -> bool:
    """
    Rename the legacy ``session_token`` file to ``session``.

    Returns:
        True if a file was moved
    """
    old_path = paths.legacy_session_token_path(label)
    new_path = paths.session_token_path(label)
    try:
        os.rename(old_path, new_path)
    except FileNotFoundError:
        return False
    logger.info(f"Migrated {old_path} to {new_path}")
    return True


def resolve_credentials(secrets: SecretsStore, label: str, needs_token: bool = True) -> DeploymentCredentials:
    """
    Look up the credentials for a deployment label.

    Raises:
        AuthenticationRequired: If the URL is missing, or the token is missing
            while token auth is required
    """
    credentials = secrets.get_session_auth(label)
    if credentials is None or not credentials.url:
        raise AuthenticationRequired("You are not logged in...")
    if not credentials.token and needs_token:
        raise AuthenticationRequired("You are not logged in...", url=credentials.url)

    logger.info(f"Using deployment URL {credentials.url}")
    logger.info(f"Using deployment label {label or 'n/a'}")
    return credentials


# ============================================================
# Binary
# ============================================================

def development_binary_path() -> Path:
    """Custom build location checked first in development mode"""
    return Path(tempfile.gettempdir()) / "coder"


def resolve_binary(
    settings: RemoteSettings,
    provider: BinaryProvider,
    api: WorkspaceApi,
    label: str,
) -> Path:
    """
    Find the CLI binary: development override, then explicit path, then provider.
    """
    candidates = []
    if settings.development:
        candidates.append(development_binary_path())
    if settings.binary_path:
        candidates.append(Path(settings.binary_path).expanduser())

    for candidate in candidates:
        if candidate.exists():
            logger.info(f"Using binary override {candidate}")
            return candidate

    return provider.fetch_binary(api, label)


def probe_binary_version(binary: Path) -> str:
    """
    Ask the CLI for its version (``<binary> version --output json``).

    Raises:
        OSError, subprocess.SubprocessError: If the binary cannot be run
        ValueError, KeyError: If the output is not the expected JSON
    """
    result = subprocess.run(
        [str(binary), "version", "--output", "json"],
        capture_output=True,
        text=True,
        timeout=30,
        check=True,
    )
    return json.loads(result.stdout)["version"]


# ============================================================
# Version negotiation
# ============================================================

def negotiate_features(
    api: WorkspaceApi,
    binary: Path,
    probe: VersionProbe = probe_binary_version,
) -> FeatureSet:
    """
    Derive the feature set, preferring the binary's version over the server's.

    Raises:
        IncompatibleServerError: If the legacy SSH proxy command is unsupported
    """
    build_info = api.get_build_info()
    server_version = build_info.get("version", "")

    version_str: Optional[str]
    try:
        version_str = probe(binary)
    except (OSError, subprocess.SubprocessError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Unable to determine version of {binary}, using server version {server_version}: {e}")
        version_str = server_version

    version = parse_version(version_str)
    feature_set = feature_set_for_version(version)
    logger.debug(f"Version {version_str} gives {feature_set}")

    if not feature_set.vscodessh:
        raise IncompatibleServerError(
            "Your Coder server is too old to support the Coder extension! Please upgrade to v0.14.1 or newer."
        )
    return feature_set
