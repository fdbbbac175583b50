"""
Authority domain models
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RemoteAuthorityParts:
    """
    Structured form of a remote authority.

    Attributes:
        username: Workspace owner
        workspace: Workspace name
        agent: Requested agent name, None to pick automatically
        label: Deployment label (safe hostname), empty for the legacy deployment
        ssh_host: Full SSH host name the transport connects to
        container_name_hex: Dev container name when attaching to a container
    """
    username: str
    workspace: str
    agent: Optional[str]
    label: str
    ssh_host: str
    container_name_hex: Optional[str] = None

    @property
    def workspace_name(self) -> str:
        """owner/workspace"""
        return f"{self.username}/{self.workspace}"
