"""
Version parsing and feature negotiation
"""
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ...core.constants import (
    MIN_PROXY_LOG_DIR_VERSION,
    MIN_VSCODESSH_VERSION,
    MIN_WILDCARD_SSH_VERSION,
)
from ...core.logging import get_logger

logger = get_logger(__name__)

SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


@dataclass(frozen=True)
class SemVer:
    """Semantic version; build metadata is kept but never compared"""
    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: str = ""

    @property
    def core(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def compare(self, other: Tuple[int, int, int]) -> int:
        """
        Compare against a plain release triple.

        A prerelease sorts before the release with the same triple.
        """
        if self.core != other:
            return 1 if self.core > other else -1
        return -1 if self.prerelease else 0


def parse_version(version_str: Optional[str]) -> Optional[SemVer]:
    """
    Parse a version string like "v2.3.4+e491217" or "2.19.0-devel+abc".

    Returns:
        SemVer or None when the string is not a semantic version
    """
    if not version_str:
        return None
    match = SEMVER_PATTERN.match(version_str.strip())
    if not match:
        logger.debug(f"Failed to parse version string: {version_str}")
        return None
    prerelease = match.group("prerelease")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=match.group("build") or "",
    )


@dataclass(frozen=True)
class FeatureSet:
    """
    Capabilities of the deployment's CLI.

    Attributes:
        vscodessh: Supports the legacy ``vscodessh`` proxy command (v0.14.1+)
        proxy_log_directory: Supports ``--log-dir`` on the proxy command (after v2.3.3)
        wildcard_ssh: Supports ``ssh --ssh-host-prefix`` (v2.19.0+)
    """
    vscodessh: bool
    proxy_log_directory: bool
    wildcard_ssh: bool


def _is_devel(version: SemVer) -> bool:
    return bool(version.prerelease) and version.prerelease[0] == "devel"


def feature_set_for_version(version: Optional[SemVer]) -> FeatureSet:
    """Build the FeatureSet for a parsed version; unknown versions are assumed modern for vscodessh"""
    if version is None:
        return FeatureSet(vscodessh=True, proxy_log_directory=False, wildcard_ssh=False)

    vscodessh = bool(version.prerelease) or version.compare(MIN_VSCODESSH_VERSION) >= 0
    return FeatureSet(
        vscodessh=vscodessh,
        proxy_log_directory=version.compare(MIN_PROXY_LOG_DIR_VERSION) > 0 or _is_devel(version),
        wildcard_ssh=version.compare(MIN_WILDCARD_SSH_VERSION) >= 0 or _is_devel(version),
    )
