"""
Workspace domain models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class BuildStatus(str, Enum):
    """Status of the latest workspace build"""
    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"
    CANCELING = "canceling"
    CANCELED = "canceled"
    DELETING = "deleting"
    DELETED = "deleted"

    @classmethod
    def parse(cls, value: str) -> "BuildStatus":
        try:
            return cls(value)
        except ValueError:
            # Unknown statuses are treated as a build in progress
            return cls.PENDING


class AgentStatus(str, Enum):
    """Connection status of a workspace agent"""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    TIMEOUT = "timeout"

    @classmethod
    def parse(cls, value: str) -> "AgentStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.CONNECTING


IN_PROGRESS_STATUSES = (BuildStatus.PENDING, BuildStatus.STARTING, BuildStatus.STOPPING)
UNAVAILABLE_STATUSES = (
    BuildStatus.CANCELING,
    BuildStatus.CANCELED,
    BuildStatus.DELETING,
    BuildStatus.DELETED,
)


@dataclass(frozen=True)
class AgentSnapshot:
    """Agent as seen in one workspace snapshot"""
    id: str
    name: str
    status: AgentStatus
    operating_system: str = "linux"
    lifecycle_state: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentSnapshot":
        """Create from an API agent object"""
        return cls(
            id=data["id"],
            name=data["name"],
            status=AgentStatus.parse(data.get("status", "connecting")),
            operating_system=data.get("operating_system", "linux"),
            lifecycle_state=data.get("lifecycle_state", ""),
        )


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """
    Immutable view of a workspace at one point in time.

    Snapshots are produced by the API client and the watcher and are passed
    explicitly to whoever needs them; nothing in the core keeps a shared
    "current workspace".
    """
    id: str
    owner: str
    name: str
    build_status: BuildStatus
    agents: Tuple[AgentSnapshot, ...] = field(default_factory=tuple)
    build_id: str = ""
    template_version_id: str = ""
    template_active_version_id: str = ""
    template_require_active_version: bool = False

    @property
    def identifier(self) -> str:
        """owner/name"""
        return f"{self.owner}/{self.name}"

    def find_agent(self, agent_id: str) -> Optional[AgentSnapshot]:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def target_version_id(self) -> str:
        """Template version a start should build"""
        if self.template_require_active_version and self.template_active_version_id:
            return self.template_active_version_id
        return self.template_version_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceSnapshot":
        """Create from an API workspace object"""
        build = data.get("latest_build") or {}
        agents: List[AgentSnapshot] = []
        for resource in build.get("resources") or []:
            for agent in resource.get("agents") or []:
                agents.append(AgentSnapshot.from_dict(agent))

        return cls(
            id=data["id"],
            owner=data.get("owner_name", ""),
            name=data["name"],
            build_status=BuildStatus.parse(build.get("status", "pending")),
            agents=tuple(agents),
            build_id=build.get("id", ""),
            template_version_id=build.get("template_version_id", ""),
            template_active_version_id=data.get("template_active_version_id", ""),
            template_require_active_version=bool(data.get("template_require_active_version", False)),
        )
