"""
Workspace domain module
"""
from .agents import filter_agents, select_agent
from .models import AgentSnapshot, AgentStatus, BuildStatus, WorkspaceSnapshot
from .state_machine import (
    BuildLogStream,
    ReadinessState,
    SnapshotCoalescer,
    WorkspaceStateMachine,
)
from .watcher import WorkspaceWatcher

__all__ = [
    "AgentSnapshot",
    "AgentStatus",
    "BuildLogStream",
    "BuildStatus",
    "ReadinessState",
    "SnapshotCoalescer",
    "WorkspaceSnapshot",
    "WorkspaceStateMachine",
    "WorkspaceWatcher",
    "filter_agents",
    "select_agent",
]
