"""
Agent selection
"""
from typing import Optional, Sequence

from ...core.exceptions import AgentSelectionError
from ...core.interfaces import PromptProvider
from .models import AgentSnapshot


def filter_agents(agents: Sequence[AgentSnapshot], name: Optional[str]) -> list:
    """Agents matching ``name``; all agents when no name is given"""
    if not name:
        return list(agents)
    return [agent for agent in agents if agent.name == name]


def select_agent(
    agents: Sequence[AgentSnapshot],
    name: Optional[str],
    prompts: Optional[PromptProvider] = None,
) -> AgentSnapshot:
    """
    Pick the agent to connect to.

    Args:
        agents: Agents of a running workspace
        name: Agent requested in the authority, if any
        prompts: Used to disambiguate when several agents qualify

    Returns:
        The selected agent

    Raises:
        AgentSelectionError: If nothing matches or the user declines to choose
    """
    candidates = filter_agents(agents, name)

    if not candidates:
        if name:
            raise AgentSelectionError(f'Workspace has no agent named "{name}"')
        raise AgentSelectionError("Workspace has no agents")

    if len(candidates) == 1:
        return candidates[0]

    if prompts is None:
        raise AgentSelectionError(
            f"Workspace has {len(candidates)} agents; specify one of: "
            + ", ".join(agent.name for agent in candidates)
        )

    chosen = prompts.choose("Select an agent", [agent.name for agent in candidates])
    for agent in candidates:
        if agent.name == chosen:
            return agent
    raise AgentSelectionError("Agent selection cancelled")
