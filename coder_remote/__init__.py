"""
coder-remote - connect SSH-based remote tooling to cloud workspaces

Turns a remote authority into a reachable workspace:
- Authority parsing (deployment label, owner, workspace, agent)
- Credential resolution and server/CLI version negotiation
- Workspace readiness (start, build wait, agent wait)
- SSH config management (one managed block per deployment, with
  override merging and post-write conflict detection)
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    PathResolver,
    RemoteSettings,
    setup_logging,
)

# Export domain
from .domain.authority import (
    RemoteAuthorityParts,
    parse_remote_authority,
    to_remote_authority,
)

from .domain.ssh import (
    SSHConfig,
    SSHOptions,
    SSHValues,
    compute_ssh_properties,
)

from .domain.version import (
    FeatureSet,
    feature_set_for_version,
    parse_version,
)

from .domain.connection import (
    DeploymentCredentials,
    RemoteDetails,
    RemoteSetup,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "PathResolver",
    "RemoteSettings",
    "setup_logging",
    # Authority
    "RemoteAuthorityParts",
    "parse_remote_authority",
    "to_remote_authority",
    # SSH
    "SSHConfig",
    "SSHOptions",
    "SSHValues",
    "compute_ssh_properties",
    # Version
    "FeatureSet",
    "feature_set_for_version",
    "parse_version",
    # Connection
    "DeploymentCredentials",
    "RemoteDetails",
    "RemoteSetup",
]
